from dataclasses import dataclass

from lightkube.models import meta_v1


@dataclass
class ObjectMeta(meta_v1.ObjectMeta):
    def __post_init__(self, **kwargs):
        # Set defaults for commonly used nested data structures.
        if self.annotations is None:
            self.annotations = {}
        if self.finalizers is None:
            self.finalizers = []
        if self.labels is None:
            self.labels = {}
        if self.ownerReferences is None:
            self.ownerReferences = []


class Resource:
    apiVersion: str = None
    kind: str = None
    metadata: ObjectMeta = None

    def __repr__(self):
        out = [f'{self.apiVersion}/{self.kind}']
        metadata = self.metadata
        if metadata is not None:
            if metadata.namespace is not None:
                out.append(f'{metadata.namespace}/{metadata.name}')
            elif metadata.name is not None:
                out.append(metadata.name)
            if metadata.resourceVersion is not None:
                out.append(metadata.resourceVersion)
        return '<Object %s>' % ' '.join(out)
