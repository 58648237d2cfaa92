from ..exceptions import StoreKeyError


def object_key(name, namespace=None):
    """`namespace/name` for namespaced objects, `name` for cluster scoped ones."""
    if name is None:
        raise KeyError(name)
    return name if namespace is None else f'{namespace}/{name}'


def meta_namespace_key_func(obj):
    try:
        metadata = obj.metadata
        return object_key(metadata.name, getattr(metadata, 'namespace', None))
    except AttributeError as e:
        raise StoreKeyError(obj) from e


class Store:
    """The latest known state of every object of one resource, by key.

    Only informers write to a store, everybody else reads copies through
    the cache.
    """

    def __init__(self, key_func=meta_namespace_key_func):
        self.key_func = key_func
        self._objects = {}

    def __repr__(self):
        return f'<Store {len(self)} objects>'

    def __getitem__(self, key):
        return self._objects[key]

    def __contains__(self, key):
        return key in self._objects

    def __len__(self):
        return len(self._objects)

    def add(self, obj):
        self._objects[self.key_func(obj)] = obj

    update = add

    def delete(self, obj):
        """Forget obj. Objects the store does not know are ignored."""
        self._objects.pop(self.key_func(obj), None)

    def get(self, obj):
        """Return the stored state of obj, raise KeyError if there is none."""
        return self._objects[self.key_func(obj)]

    def keys(self):
        return self._objects.keys()

    def list(self):
        return list(self._objects.values())
