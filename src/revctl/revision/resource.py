import datetime
import typing
from dataclasses import field

from lightkube.models.core_v1 import Container

from ..resources import crd, ObjectMeta


GROUP = 'ela.dev'
VERSION = 'v1alpha1'

CONCURRENCY_MULTI = 'Multi'
CONCURRENCY_SINGLE = 'Single'


@crd.model
class RevisionSpec:
    """RevisionSpec holds the desired state of a Revision."""

    container: Container = None
    # Single: one request at a time per container, routed through the
    # request queue. Multi: requests go straight to the container.
    concurrencyModel: str = CONCURRENCY_MULTI
    service: str = None
    serviceAccountName: str = None


@crd.model
class RevisionCondition:
    type: str
    status: str
    reason: str = None
    message: str = None
    lastTransitionTime: datetime.datetime = None


@crd.subresource
class RevisionStatus:
    """RevisionStatus holds the observed state of a Revision.
    It is always reconstructable from the state of the cluster.
    """

    serviceName: str = None
    conditions: typing.List[RevisionCondition] = field(default_factory=list)

    def get_condition(self, type):
        for condition in self.conditions or []:
            if condition.type == type:
                return condition
        return None

    def set_condition(self, type, status, reason=None, message=None):
        """Set the condition of the given type, replacing any existing one.

        The transition time only moves when the status value changes.
        """
        now = datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)
        transition = now
        conditions = []
        for condition in self.conditions or []:
            if condition.type != type:
                conditions.append(condition)
            elif condition.status == status and condition.lastTransitionTime:
                transition = condition.lastTransitionTime
        condition = RevisionCondition(
            type=type,
            status=status,
            reason=reason,
            message=message,
            lastTransitionTime=transition,
        )
        conditions.append(condition)
        self.conditions = conditions
        return condition


@crd.resource(group=GROUP, version=VERSION, short_names=['rev'])
@crd.printcolumn('Ready', '.status.conditions[?(@.type=="Ready")].status')
@crd.printcolumn('Reason', '.status.conditions[?(@.type=="Ready")].reason')
@crd.printcolumn('Service', '.status.serviceName', priority=1)
class Revision:
    """Revision is one immutable, deployable version of a workload."""

    apiVersion: str = f'{GROUP}/{VERSION}'
    kind: str = 'Revision'
    metadata: ObjectMeta = None
    spec: RevisionSpec = field(default_factory=RevisionSpec)
    status: RevisionStatus = field(default_factory=RevisionStatus)
