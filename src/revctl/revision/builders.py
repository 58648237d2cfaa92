"""
Desired state of the child resources of a revision.

The builders only produce payloads, they never talk to the cluster. Owner
references are attached by the caller.
"""
import copy

from lightkube.models.apps_v1 import (
    DeploymentSpec,
    DeploymentStrategy,
    RollingUpdateDeployment,
)
from lightkube.models.autoscaling_v1 import (
    CrossVersionObjectReference,
    HorizontalPodAutoscalerSpec,
)
from lightkube.models.core_v1 import (
    ConfigMapVolumeSource,
    Container,
    ContainerPort,
    EmptyDirVolumeSource,
    PodSpec,
    PodTemplateSpec,
    ServicePort,
    ServiceSpec,
    Volume,
    VolumeMount,
)
from lightkube.models.meta_v1 import LabelSelector, ObjectMeta
from lightkube.resources.apps_v1 import Deployment
from lightkube.resources.autoscaling_v1 import HorizontalPodAutoscaler
from lightkube.resources.core_v1 import ConfigMap, Service

from ..config import ChildSettings
from . import naming
from .resource import CONCURRENCY_SINGLE


SERVICE_LABEL = 'elaservice'
REVISION_LABEL = 'revision'

NGINX_CONFIG_KEY = 'nginx.conf'
NGINX_CONFIG_VOLUME_NAME = 'nginx-config'


NGINX_CONFIG = """\
daemon off;
worker_processes auto;
pid /tmp/nginx.pid;

events {{
  worker_connections 4096;
}}

http {{
  access_log {log_path}/access.log;
  error_log {log_path}/error.log;

  upstream backend {{
    server {upstream};
    keepalive 64;
  }}

  server {{
    listen {listen_port};

    location / {{
      proxy_pass http://backend;
      proxy_http_version 1.1;
      proxy_set_header Connection "";
      proxy_set_header Host $host;
      proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
    }}
  }}
}}
"""


def labels(revision):
    return {
        SERVICE_LABEL: revision.spec.service or '',
        REVISION_LABEL: revision.metadata.name,
    }


def _metadata(revision, name, namespace):
    return ObjectMeta(
        name=name,
        namespace=namespace,
        labels=labels(revision),
    )


def enable_queue(revision, settings: ChildSettings):
    """Requests are routed through the request queue for single concurrency
    revisions, as long as there is a queue image to run.
    """
    return (
        revision.spec.concurrencyModel == CONCURRENCY_SINGLE
        and bool(settings.queue_image)
    )


def nginx_config(settings: ChildSettings, enable_queue=False):
    """Return the nginx configuration proxying to the user container or,
    if the queue is enabled, to the request queue.
    """
    if enable_queue:
        upstream = f'127.0.0.1:{settings.queue_port}'
    else:
        upstream = f'127.0.0.1:{settings.container_port}'
    return NGINX_CONFIG.format(
        log_path=settings.nginx_log_volume_mount_path,
        upstream=upstream,
        listen_port=settings.nginx_port,
    )


def make_user_container(revision, settings: ChildSettings):
    if revision.spec.container is not None:
        container = copy.deepcopy(revision.spec.container)
    else:
        container = Container(name=settings.container_name)
    container.name = settings.container_name
    container.ports = [
        ContainerPort(
            name=settings.container_port_name,
            containerPort=settings.container_port,
        )
    ]
    container.volumeMounts = list(container.volumeMounts or []) + [
        VolumeMount(
            name=settings.log_volume_name,
            mountPath=settings.log_volume_mount_path,
        )
    ]
    return container


def make_pod_spec(revision, settings: ChildSettings):
    """Return the pod spec shared by all replicas of a revision."""
    containers = [
        make_user_container(revision, settings),
        Container(
            name=settings.nginx_container_name,
            image=settings.nginx_image,
            ports=[
                ContainerPort(
                    name=settings.nginx_port_name,
                    containerPort=settings.nginx_port,
                )
            ],
            volumeMounts=[
                VolumeMount(
                    name=NGINX_CONFIG_VOLUME_NAME,
                    mountPath=settings.nginx_config_mount_path,
                ),
                VolumeMount(
                    name=settings.nginx_log_volume_name,
                    mountPath=settings.nginx_log_volume_mount_path,
                ),
            ],
        ),
    ]
    if settings.fluentd_image:
        containers.append(
            Container(
                name=settings.fluentd_container_name,
                image=settings.fluentd_image,
                volumeMounts=[
                    VolumeMount(
                        name=settings.log_volume_name,
                        mountPath=settings.log_volume_mount_path,
                    ),
                    VolumeMount(
                        name=settings.nginx_log_volume_name,
                        mountPath=settings.nginx_log_volume_mount_path,
                    ),
                ],
            )
        )
    if enable_queue(revision, settings):
        containers.append(
            Container(
                name=settings.queue_container_name,
                image=settings.queue_image,
                ports=[
                    ContainerPort(
                        name=settings.queue_port_name,
                        containerPort=settings.queue_port,
                    )
                ],
            )
        )
    return PodSpec(
        containers=containers,
        serviceAccountName=revision.spec.serviceAccountName,
        volumes=[
            Volume(
                name=settings.log_volume_name,
                emptyDir=EmptyDirVolumeSource(),
            ),
            Volume(
                name=settings.nginx_log_volume_name,
                emptyDir=EmptyDirVolumeSource(),
            ),
            Volume(
                name=NGINX_CONFIG_VOLUME_NAME,
                configMap=ConfigMapVolumeSource(
                    name=naming.configmap_name(revision),
                ),
            ),
        ],
    )


def make_deployment(revision, namespace, settings: ChildSettings):
    name = naming.deployment_name(revision)
    return Deployment(
        metadata=_metadata(revision, name, namespace),
        spec=DeploymentSpec(
            replicas=settings.replicas,
            selector=LabelSelector(matchLabels=labels(revision)),
            strategy=DeploymentStrategy(
                type='RollingUpdate',
                rollingUpdate=RollingUpdateDeployment(
                    maxUnavailable=settings.max_unavailable,
                    maxSurge=settings.max_surge,
                ),
            ),
            template=PodTemplateSpec(
                metadata=ObjectMeta(labels=labels(revision)),
                spec=make_pod_spec(revision, settings),
            ),
        ),
    )


def make_autoscaler(revision, namespace, settings: ChildSettings):
    name = naming.autoscaler_name(revision)
    return HorizontalPodAutoscaler(
        metadata=_metadata(revision, name, namespace),
        spec=HorizontalPodAutoscalerSpec(
            scaleTargetRef=CrossVersionObjectReference(
                apiVersion='apps/v1',
                kind='Deployment',
                name=naming.deployment_name(revision),
            ),
            minReplicas=settings.min_replicas,
            maxReplicas=settings.max_replicas,
            targetCPUUtilizationPercentage=settings.target_cpu_utilization,
        ),
    )


def make_configmap(revision, namespace, settings: ChildSettings):
    name = naming.configmap_name(revision)
    return ConfigMap(
        metadata=_metadata(revision, name, namespace),
        data={
            NGINX_CONFIG_KEY: nginx_config(
                settings, enable_queue=enable_queue(revision, settings)
            ),
        },
    )


def make_service(revision, namespace, settings: ChildSettings):
    name = naming.service_name(revision)
    return Service(
        metadata=_metadata(revision, name, namespace),
        spec=ServiceSpec(
            selector=labels(revision),
            ports=[
                ServicePort(
                    name='http',
                    port=settings.service_port,
                    targetPort=settings.nginx_port_name,
                )
            ],
        ),
    )
