import dataclasses

from ..cache.events import CreateEvent, UpdateEvent
from ..exceptions import InvalidKeyError, StoreKeyError


@dataclasses.dataclass(frozen=True)
class Request:
    """Identity of a namespaced object that needs reconciling.

    Requests never carry an object snapshot, the object is always fetched
    again when the request is processed.
    """

    namespace: str
    name: str

    def __str__(self):
        return f'{self.namespace}/{self.name}'

    def __repr__(self):
        return f'<Request {self.namespace}/{self.name}>'

    @property
    def key(self):
        return str(self)

    def validate(self):
        """Raise InvalidKeyError unless namespace and name are usable."""
        for part in (self.namespace, self.name):
            if not isinstance(part, str) or not part or '/' in part:
                raise InvalidKeyError(f'invalid resource key: {self.key!r}')
        return self

    @classmethod
    def from_key(cls, key):
        """Parse a `namespace/name` key."""
        parts = key.split('/') if isinstance(key, str) else []
        if len(parts) != 2:
            raise InvalidKeyError(f'invalid resource key: {key!r}')
        return cls(*parts).validate()

    @classmethod
    def from_object(cls, obj):
        try:
            return cls(obj.metadata.namespace, obj.metadata.name)
        except AttributeError as e:
            raise StoreKeyError(obj) from e


def request_for_object(obj):
    if obj is None:
        return
    yield Request.from_object(obj)


def requests_from_event(event):
    """Turn an informer event into requests for the affected object.

    Only creates and updates are of interest, deletions are discovered by
    the reconcile function through the deletion marker on the object itself.
    """
    match event:
        case CreateEvent(obj=obj) | UpdateEvent(new=obj):
            return request_for_object(obj)
    return ()
