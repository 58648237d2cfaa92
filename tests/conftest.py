import copy
import datetime
import itertools

import httpx
import pytest

from lightkube import ApiError
from lightkube.models.core_v1 import Container

from revctl.config import Settings
from revctl.exceptions import ObjectNotFound
from revctl.resources import ObjectMeta
from revctl.revision import Revision, RevisionSpec


@pytest.fixture
def anyio_backend():
    return 'asyncio'


def api_error(code, message=None):
    """Build the error lightkube raises for a failed api request."""
    response = httpx.Response(
        code,
        json={
            'apiVersion': 'v1',
            'kind': 'Status',
            'status': 'Failure',
            'code': code,
            'message': message or f'request failed with {code}',
        },
        request=httpx.Request('GET', 'https://kubernetes.test/'),
    )
    return ApiError(request=response.request, response=response)


class FakeClient:
    """In memory stand-in for revctl.client.AsyncClient.

    Objects are keyed by kind, namespace and name. Failures can be injected
    per operation and kind with `fail()`.
    """

    def __init__(self):
        self.objects = {}
        self.calls = []
        # Objects as handed to replace_status, before the status is merged.
        self.status_writes = []
        self._failures = {}
        self._versions = itertools.count(1)
        self._uids = itertools.count(1)

    @staticmethod
    def _kind(resource):
        return resource.__name__

    def _key(self, resource, name, namespace):
        return (self._kind(resource), namespace, name)

    def _key_for(self, obj):
        return self._key(type(obj), obj.metadata.name, obj.metadata.namespace)

    def _check(self, op, resource):
        error = self._failures.get((op, self._kind(resource)))
        if error is not None:
            raise error

    def fail(self, op, resource, error=None):
        """Make every `op` call on `resource` raise error."""
        if error is None:
            error = api_error(500)
        self._failures[(op, self._kind(resource))] = error

    def heal(self, op, resource):
        self._failures.pop((op, self._kind(resource)), None)

    def add(self, obj):
        """Put an object in place without recording a call."""
        obj = copy.deepcopy(obj)
        if obj.metadata.uid is None:
            obj.metadata.uid = f'uid-{next(self._uids)}'
        obj.metadata.resourceVersion = str(next(self._versions))
        self.objects[self._key_for(obj)] = obj
        return copy.deepcopy(obj)

    def stored(self, resource, name, namespace=None):
        return self.objects.get(self._key(resource, name, namespace))

    def calls_of(self, op, resource=None):
        return [
            call for call in self.calls
            if call[0] == op and (resource is None or call[1] == self._kind(resource))
        ]

    async def get(self, resource, name, *, namespace=None, cached=True):
        self.calls.append(('get', self._kind(resource), namespace, name))
        self._check('get', resource)
        try:
            return copy.deepcopy(self.objects[self._key(resource, name, namespace)])
        except KeyError as e:
            raise ObjectNotFound(resource, name, namespace=namespace) from e

    async def create(self, obj):
        self.calls.append(('create', type(obj).__name__, obj.metadata.namespace, obj.metadata.name))
        self._check('create', type(obj))
        if self._key_for(obj) in self.objects:
            raise api_error(409, 'already exists')
        return self.add(obj)

    async def replace(self, obj):
        self.calls.append(('replace', type(obj).__name__, obj.metadata.namespace, obj.metadata.name))
        self._check('replace', type(obj))
        if self._key_for(obj) not in self.objects:
            raise ObjectNotFound(type(obj), obj.metadata.name, namespace=obj.metadata.namespace)
        return self.add(obj)

    async def replace_status(self, obj):
        self.calls.append(('replace_status', type(obj).__name__, obj.metadata.namespace, obj.metadata.name))
        self._check('replace_status', type(obj))
        self.status_writes.append(copy.deepcopy(obj))
        try:
            live = self.objects[self._key_for(obj)]
        except KeyError as e:
            raise ObjectNotFound(type(obj), obj.metadata.name, namespace=obj.metadata.namespace) from e
        live = copy.deepcopy(live)
        live.status = copy.deepcopy(obj.status)
        return self.add(live)

    async def delete(self, resource, name, *, namespace=None, cascade=None):
        self.calls.append(('delete', self._kind(resource), namespace, name, cascade))
        self._check('delete', resource)
        try:
            del self.objects[self._key(resource, name, namespace)]
        except KeyError as e:
            raise ObjectNotFound(resource, name, namespace=namespace) from e


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def settings():
    return Settings()


def make_revision(name='hello-00001', namespace='default', deleted=False, **spec):
    spec.setdefault('service', 'hello')
    spec.setdefault('container', Container(name='user', image='gcr.io/hello:v1'))
    metadata = ObjectMeta(name=name, namespace=namespace, finalizers=['controller'])
    if deleted:
        metadata.deletionTimestamp = datetime.datetime(2026, 1, 1, tzinfo=datetime.timezone.utc)
    return Revision(metadata=metadata, spec=RevisionSpec(**spec))


@pytest.fixture
def revision(client):
    return client.add(make_revision())


@pytest.fixture
def deleted_revision(client):
    return client.add(make_revision(deleted=True))


@pytest.fixture
def revision_factory():
    return make_revision


@pytest.fixture
def make_api_error():
    return api_error
