from lightkube.core import resource as lkr
from lightkube.core.exceptions import ApiError

__all__ = [
    'ApiError',
    'ApiObjectNotFound',
    'Error',
    'FatalError',
    'InvalidKeyError',
    'NamespaceError',
    'ObjectError',
    'ObjectNotFound',
    'PermanentError',
    'QueueShutDown',
    'Requeue',
    'StoreKeyError',
    'TemporaryError',
    'iterate_errors',
]


def iterate_errors(exc):
    """
    iterate over all non-exceptiongroup parts of an exception(group)
    """
    if isinstance(exc, BaseExceptionGroup):
        for e in exc.exceptions:
            yield from iterate_errors(e)
    else:
        yield exc


def _identity(api_version, kind, namespace, name):
    out = []
    if api_version is not None and kind is not None:
        out.append(f'{api_version}/{kind}')
    if namespace is not None:
        out.append(f'{namespace}/{name}')
    elif name is not None:
        out.append(name)
    return ' '.join(out)


class FatalError(Exception):
    """A fatal error that we can not recover from."""


class Error(Exception):
    """Base class for all custom Exceptions."""

    def __init__(self, message=None):
        self.message = message

    def __str__(self):
        return self.__repr__()

    def __repr__(self):
        return f'{self.__class__.__name__}: {self.message}'


class ObjectError(Error):
    def __init__(self, obj):
        self.obj = obj

    def __repr__(self):
        obj = self.obj
        metadata = getattr(obj, 'metadata', None)
        msg = _identity(
            getattr(obj, 'apiVersion', None),
            getattr(obj, 'kind', None),
            getattr(metadata, 'namespace', None),
            getattr(metadata, 'name', None),
        )
        if not msg:
            msg = repr(obj)
        return f'{self.__class__.__name__}: {msg}'


class ObjectNotFound(Error):
    """The requested object does not exist, neither in the cache nor in the api."""

    def __init__(self, resource, name, namespace=None):
        self.resource = resource
        self.name = name
        self.namespace = namespace

    def __repr__(self):
        api_version = getattr(self.resource, 'apiVersion', None)
        kind = getattr(self.resource, 'kind', None)
        msg = _identity(api_version, kind, self.namespace, self.name)
        return f'{self.__class__.__name__}: {msg}'


class ApiObjectNotFound(ObjectNotFound):
    """The api server answered a request with 404 Not Found."""

    def __repr__(self):
        info = lkr.api_info(self.resource)
        msg = _identity(
            info.resource.api_version,
            info.resource.kind,
            self.namespace,
            self.name,
        )
        return f'{self.__class__.__name__}: {msg}'


class StoreKeyError(ObjectError):
    pass


class TemporaryError(Error):
    """Raised by a reconcile function when a recoverable error occurs.
    The request will be requeued after the given delay."""

    def __init__(self, message=None, delay=10):
        super().__init__(message)
        self.delay = delay

    def __repr__(self):
        return f'{self.__class__.__name__}: {self.message} delay: {self.delay}'


class PermanentError(Error):
    """Raised by a reconcile function when a non-recoverably error occurs."""


class InvalidKeyError(PermanentError):
    """A workqueue key that does not identify a namespaced object."""


class NamespaceError(Error):
    """The namespace for a revisions child resources could not be provisioned.
    Retried with backoff like any other transient error."""


class Requeue(Error):
    """Raised by a reconcile function to requeue a request.
    The request will be requeued after the given delay."""

    def __init__(self, after=None):
        self.after = after

    def __repr__(self):
        return f'{self.__class__.__name__}: after: {self.after}'


class QueueShutDown(Exception):
    """Raised by Workqueue.get once the queue is shut down and drained."""
