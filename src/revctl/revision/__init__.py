from .children import (
    AUTOSCALER,
    CHILDREN,
    CONFIGMAP,
    DEPLOYMENT,
    SERVICE,
    ChildReconciler,
)
from .namespaces import ensure_namespace
from .reconciler import Outcome, RevisionReconciler
from .resource import (
    Revision,
    RevisionCondition,
    RevisionSpec,
    RevisionStatus,
)
from .status import release_finalizer, update_status

__all__ = [
    'AUTOSCALER',
    'CHILDREN',
    'CONFIGMAP',
    'DEPLOYMENT',
    'SERVICE',
    'ChildReconciler',
    'Outcome',
    'Revision',
    'RevisionCondition',
    'RevisionReconciler',
    'RevisionSpec',
    'RevisionStatus',
    'ensure_namespace',
    'release_finalizer',
    'update_status',
]
