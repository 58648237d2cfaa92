import dataclasses
import yaml

from . import crd
from .registry import (
    custom_resource_registry,
)

from .resources import (
    ObjectMeta,
    Resource,
)

__all__ = [
    'all_crds',
    'crd',
    'custom_resource_registry',
    'ObjectMeta',
    'Resource',
    'resources_to_yaml',
]


# Top level keys in the order kubectl users expect to read them.
_TOP_LEVEL_KEYS = ('apiVersion', 'kind', 'metadata', 'spec', 'status')


def _without_none(items):
    return {key: value for key, value in items if value is not None}


def _manifest(obj):
    data = dataclasses.asdict(obj, dict_factory=_without_none)
    ordered = {key: data.pop(key) for key in _TOP_LEVEL_KEYS if key in data}
    ordered.update(data)
    return ordered


class _ManifestDumper(yaml.SafeDumper):
    # Kubernetes does not resolve yaml anchors.
    def ignore_aliases(self, data):
        return True


def resources_to_yaml(*objects):
    """Render resources as a multi document yaml stream for kubectl apply."""
    return yaml.dump_all(
        [_manifest(obj) for obj in objects],
        Dumper=_ManifestDumper,
        sort_keys=False,
    )


def all_crds():
    """Return the CustomResourceDefinitions of all loaded resource classes."""
    return custom_resource_registry.all_crds()
