import contextlib
import logging

from lightkube import ApiError

from .exceptions import ApiObjectNotFound

__all__ = [
    'AsyncClient',
    'Client',
    'is_conflict',
    'is_not_found',
]

log = logging.getLogger(__name__)


def is_not_found(e):
    return isinstance(e, ApiError) and e.status.code == 404


def is_conflict(e):
    return isinstance(e, ApiError) and e.status.code == 409


@contextlib.contextmanager
def not_found_as_exception(resource, name, namespace=None):
    """Translate a 404 from the api server into ApiObjectNotFound."""
    try:
        yield
    except ApiError as e:
        if is_not_found(e):
            raise ApiObjectNotFound(resource, name, namespace=namespace) from e
        raise


class Client:
    """Interface: End user interface to client and cache."""

    async def get(self, resource, name, *, namespace=None, cached=True):
        """Get from cache or api server.
        Raises ObjectNotFound if the object does not exist.
        """
        raise NotImplementedError()

    async def create(self, obj):
        """Create in API server."""
        raise NotImplementedError()

    async def replace(self, obj):
        """Replace on API server."""
        raise NotImplementedError()

    async def replace_status(self, obj):
        """Replace the status subresource on API server."""
        raise NotImplementedError()

    async def delete(self, resource, name, *, namespace=None, cascade=None):
        """Delete from API server.
        Raises ObjectNotFound if the object does not exist.
        """
        raise NotImplementedError()


class AsyncClient(Client):
    """Reads watched resources from the cache, everything else from the api."""

    def __init__(self, api_client, cache=None):
        self.api_client = api_client
        self.cache = cache

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.cache!r}>'

    async def get(self, resource, name, *, namespace=None, cached=True):
        if cached and self.cache is not None and self.cache.is_watched_resource(resource):
            return await self.cache.get(
                resource,
                namespace=namespace,
                name=name,
            )
        with not_found_as_exception(resource, name, namespace=namespace):
            return await self.api_client.get(
                resource,
                name,
                namespace=namespace,
            )

    async def create(self, obj):
        return await self.api_client.create(obj)

    async def replace(self, obj):
        with not_found_as_exception(type(obj), obj.metadata.name, obj.metadata.namespace):
            return await self.api_client.replace(obj)

    async def replace_status(self, obj):
        resource = type(obj)
        if not hasattr(resource, 'Status'):
            # Without a status subresource the status is part of the object.
            return await self.replace(obj)
        status_obj = resource.Status.from_dict(obj.to_dict())
        with not_found_as_exception(resource, obj.metadata.name, obj.metadata.namespace):
            result = await self.api_client.replace(status_obj)
        return resource.from_dict(result.to_dict())

    async def delete(self, resource, name, *, namespace=None, cascade=None):
        with not_found_as_exception(resource, name, namespace=namespace):
            return await self.api_client.delete(
                resource,
                name,
                namespace=namespace,
                cascade=cascade,
            )
