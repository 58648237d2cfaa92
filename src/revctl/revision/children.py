import dataclasses
import logging
from typing import Callable, Optional

from lightkube.resources.apps_v1 import Deployment
from lightkube.resources.autoscaling_v1 import HorizontalPodAutoscaler
from lightkube.resources.core_v1 import ConfigMap, Service
from lightkube.types import CascadeType

from ..controller import set_controller_reference
from ..exceptions import ObjectNotFound
from . import builders, naming


log = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ChildReconciler:
    """Creates and deletes one kind of child resource of a revision.

    Creation is creation-only: an existing child is left untouched, even if
    it differs from what would be built now.
    """

    step: str
    resource: type
    name: Callable
    build: Callable
    # Failing to create a primary child aborts the reconcile cycle.
    primary: bool = False
    # Status field of the revision that records the name of this child.
    status_field: Optional[str] = None
    cascade: CascadeType = CascadeType.FOREGROUND

    @property
    def kind(self):
        return self.resource.__name__

    async def exists(self, client, name, namespace):
        try:
            await client.get(self.resource, name, namespace=namespace, cached=False)
        except ObjectNotFound:
            return False
        return True

    async def reconcile(self, client, revision, namespace, settings):
        """Ensure the child exists, return its name."""
        name = self.name(revision)
        if await self.exists(client, name, namespace):
            log.info('Found existing %s %s/%s', self.kind, namespace, name)
            return name
        log.info('%s %s/%s does not exist, creating', self.kind, namespace, name)
        obj = self.build(revision, namespace, settings)
        if namespace == revision.metadata.namespace:
            set_controller_reference(revision, obj)
        else:
            # Owner references do not cross namespaces, the delete path
            # removes these children.
            log.debug('not owning %s %s/%s, it is outside %s',
                self.kind, namespace, name, revision.metadata.namespace)
        await client.create(obj)
        return name

    async def delete(self, client, revision, namespace):
        """Delete the child if it exists. Return whether it was there."""
        name = self.name(revision)
        if not await self.exists(client, name, namespace):
            return False
        log.info('Deleting %s %s/%s', self.kind, namespace, name)
        try:
            await client.delete(
                self.resource, name, namespace=namespace, cascade=self.cascade
            )
        except ObjectNotFound:
            # Gone between the get and the delete.
            pass
        return True


DEPLOYMENT = ChildReconciler(
    'deployment',
    Deployment,
    naming.deployment_name,
    builders.make_deployment,
    primary=True,
)
AUTOSCALER = ChildReconciler(
    'autoscaler',
    HorizontalPodAutoscaler,
    naming.autoscaler_name,
    builders.make_autoscaler,
)
CONFIGMAP = ChildReconciler(
    'configmap',
    ConfigMap,
    naming.configmap_name,
    builders.make_configmap,
)
SERVICE = ChildReconciler(
    'service',
    Service,
    naming.service_name,
    builders.make_service,
    status_field='serviceName',
)

# Children in the order they are created and deleted.
CHILDREN = (DEPLOYMENT, AUTOSCALER, CONFIGMAP, SERVICE)
