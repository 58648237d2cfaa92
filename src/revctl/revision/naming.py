"""
Names of the child resources of a revision.

Every name is a pure function of the revisions identity, so children can be
found again without keeping an index. Children of revisions in different
namespaces never collide because the derived namespace is unique per
revision namespace, and within a namespace the revision name is unique.
"""


def revision_namespace(namespace, suffix=''):
    """Return the namespace the child resources of revisions in the given
    namespace live in.
    """
    return f'{namespace}{suffix or ""}'


def deployment_name(revision):
    return f'{revision.metadata.name}-deployment'


def autoscaler_name(revision):
    return f'{revision.metadata.name}-autoscaler'


def configmap_name(revision):
    return f'{revision.metadata.name}-proxy-configmap'


def service_name(revision):
    return f'{revision.metadata.name}-service'
