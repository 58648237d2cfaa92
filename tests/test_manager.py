import anyio
import pytest

from lightkube.core import resource as lkr

from revctl.config import Settings
from revctl.manager import ALL_NAMESPACES, Manager
from revctl.revision import Revision


def _key(obj):
    kind = lkr.api_info(type(obj)).resource.kind
    return (kind, obj.metadata.namespace, obj.metadata.name)


class FakeList:
    def __init__(self, items):
        self.items = items
        self.resourceVersion = '1'

    async def __aiter__(self):
        for item in self.items:
            yield item


class FakeApi:
    """Just enough of lightkube.AsyncClient to run the manager against."""

    namespace = 'default'

    def __init__(self, api_error, *objects):
        self.api_error = api_error
        self.objects = {_key(obj): obj for obj in objects}
        self.replaced = []

    def list(self, resource, namespace=None):
        kind = lkr.api_info(resource).resource.kind
        return FakeList([
            obj for (k, ns, _), obj in self.objects.items()
            if k == kind and namespace in (None, ALL_NAMESPACES, ns)
        ])

    async def watch(self, resource, resource_version=None, namespace=None):
        await anyio.sleep_forever()
        yield

    async def get(self, resource, name, namespace=None):
        kind = lkr.api_info(resource).resource.kind
        try:
            return self.objects[(kind, namespace, name)]
        except KeyError:
            raise self.api_error(404) from None

    async def create(self, obj):
        if _key(obj) in self.objects:
            raise self.api_error(409)
        self.objects[_key(obj)] = obj
        return obj

    async def replace(self, obj):
        self.objects[_key(obj)] = obj
        self.replaced.append(obj)
        return obj

    async def delete(self, resource, name, namespace=None, cascade=None):
        kind = lkr.api_info(resource).resource.kind
        self.objects.pop((kind, namespace, name))


def test_watched_namespaces():
    api = FakeApi(None)
    assert Manager(Settings(), api_client=api).namespaces == ['default']
    assert Manager(Settings(namespaces=['a', 'b', 'a']), api_client=api).namespaces == ['a', 'b']
    assert Manager(Settings(all_namespaces=True), api_client=api).namespaces == [ALL_NAMESPACES]


@pytest.mark.anyio
async def test_setup_wires_components():
    manager = Manager(Settings(workers=3, namespaces=['a', 'b']), api_client=FakeApi(None))

    manager.setup()

    assert [i.namespace for i in manager.cache.informers] == ['a', 'b']
    assert manager.cache.is_watched_resource(Revision)
    assert manager.controller.concurrent_reconciles == 3
    assert manager.reconciler.client is manager.client


@pytest.mark.anyio
async def test_manager_reconciles_listed_revisions(revision_factory, make_api_error):
    revision = revision_factory()
    revision.metadata.uid = 'uid-1'
    api = FakeApi(make_api_error, revision)
    settings = Settings(workers=2, namespaces=['default'])
    manager = Manager(settings, api_client=api)
    stop = anyio.Event()

    async def stopper():
        while not api.replaced:
            await anyio.sleep(0.01)
        stop.set()

    with anyio.fail_after(5):
        async with anyio.create_task_group() as tg:
            tg.start_soon(stopper)
            await manager(stop=stop)

    assert ('Namespace', None, 'default') in api.objects
    for kind, name in [
        ('Deployment', 'hello-00001-deployment'),
        ('HorizontalPodAutoscaler', 'hello-00001-autoscaler'),
        ('ConfigMap', 'hello-00001-proxy-configmap'),
        ('Service', 'hello-00001-service'),
    ]:
        assert (kind, 'default', name) in api.objects
    [status] = api.replaced
    assert isinstance(status, Revision.Status)
    assert status.status.serviceName == 'hello-00001-service'
    assert status.status.get_condition('Ready').reason == 'Deploying'
