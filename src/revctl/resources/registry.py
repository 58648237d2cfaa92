from lightkube.resources.apiextensions_v1 import (
    CustomResourceDefinition,
)

from lightkube.models.apiextensions_v1 import (
    CustomResourceDefinitionVersion,
)


# Kubernetes needs a structural schema. We do not publish the details of our
# models, the api server keeps whatever we store.
OPEN_SCHEMA = {
    'openAPIV3Schema': {
        'type': 'object',
        'properties': {
            'spec': {
                'type': 'object',
                'x-kubernetes-preserve-unknown-fields': True,
            },
            'status': {
                'type': 'object',
                'x-kubernetes-preserve-unknown-fields': True,
            },
        },
    },
}


class CustomResourceRegistry:
    """Collects the CustomResourceDefinitions of our resource classes while
    their decorators run.
    """

    def __init__(self):
        self._crds = {}
        self._versions = {}

    def add(self, crd: CustomResourceDefinition):
        self._crds[crd.metadata.name] = crd

    def get_crd_version(self, resource_class: type) -> CustomResourceDefinitionVersion:
        """The version entry a resource class is being described in."""
        key = f'{resource_class.__module__}.{resource_class.__qualname__}'
        if key not in self._versions:
            self._versions[key] = CustomResourceDefinitionVersion(
                name=None,
                served=None,
                storage=None,
                additionalPrinterColumns=[],
                subresources={},
                schema=OPEN_SCHEMA,
            )
        return self._versions[key]

    def all_crds(self) -> list[CustomResourceDefinition]:
        return list(self._crds.values())


custom_resource_registry = CustomResourceRegistry()
