"""
Controller settings.

All settings have usable defaults, the CLI overrides them from its options
and the corresponding ``REVCTL_*`` environment variables.
"""
import dataclasses
from typing import List, Optional


@dataclasses.dataclass
class QueueSettings:
    # Per request exponential backoff on failures.
    base_delay: float = 0.005
    max_delay: float = 1000
    # Overall token bucket shared by all requests.
    bucket_capacity: int = 100
    bucket_rate: float = 10


@dataclasses.dataclass
class ChildSettings:
    """Parameters of the child resources created for each revision."""

    replicas: int = 2
    max_unavailable: int = 1
    max_surge: int = 1
    container_name: str = 'ela-container'
    container_port: int = 8080
    container_port_name: str = 'ela-port'
    log_volume_name: str = 'ela-logs'
    log_volume_mount_path: str = '/var/log/app_engine'
    nginx_container_name: str = 'nginx-proxy'
    nginx_image: str = 'gcr.io/google_appengine/nginx-proxy:latest'
    nginx_port: int = 8180
    nginx_port_name: str = 'nginx-http-port'
    nginx_config_mount_path: str = '/tmp/nginx'
    nginx_log_volume_name: str = 'nginx-logs'
    nginx_log_volume_mount_path: str = '/var/log/nginx'
    # The log forwarding sidecar is left out when no image is set.
    fluentd_container_name: str = 'fluentd-logger'
    fluentd_image: Optional[str] = 'gcr.io/google_appengine/fluentd-logger:latest'
    # The request queue sidecar is only added for single concurrency
    # revisions and only when an image is set.
    queue_container_name: str = 'request-queue'
    queue_image: Optional[str] = None
    queue_port: int = 8012
    queue_port_name: str = 'queue-port'
    service_port: int = 80
    min_replicas: int = 1
    max_replicas: int = 10
    target_cpu_utilization: int = 50


@dataclasses.dataclass
class Settings:
    # Number of workers processing revisions in parallel.
    workers: int = 2
    # Namespaces to watch, empty means the namespace the controller runs in.
    namespaces: List[str] = dataclasses.field(default_factory=list)
    all_namespaces: bool = False
    # Child resources live in `<revision namespace><namespace_suffix>`. With a
    # suffix they can not reference their revision as owner.
    namespace_suffix: str = ''
    # Remove our finalizer from revisions once their children are deleted.
    release_finalizer: bool = False
    finalizer: str = 'controller'
    # Seconds between full relists of the watched revisions.
    resync_after: Optional[int] = 10 * 60 * 60
    queue: QueueSettings = dataclasses.field(default_factory=QueueSettings)
    children: ChildSettings = dataclasses.field(default_factory=ChildSettings)
