import pytest

from lightkube.resources.apps_v1 import Deployment
from lightkube.resources.autoscaling_v1 import HorizontalPodAutoscaler
from lightkube.resources.core_v1 import ConfigMap, Namespace, Service
from lightkube.models.meta_v1 import ObjectMeta
from lightkube.types import CascadeType

from revctl.controller import Request
from revctl.exceptions import InvalidKeyError, NamespaceError, ObjectNotFound
from revctl.revision import Revision, RevisionReconciler


pytestmark = pytest.mark.anyio

CHILD_KINDS = [Deployment, HorizontalPodAutoscaler, ConfigMap, Service]
CHILD_NAMES = [
    'hello-00001-deployment',
    'hello-00001-autoscaler',
    'hello-00001-proxy-configmap',
    'hello-00001-service',
]


@pytest.fixture
def reconciler(client, settings):
    return RevisionReconciler(client, settings)


@pytest.fixture
def request_():
    return Request('default', 'hello-00001')


def ready_condition(client):
    stored = client.stored(Revision, 'hello-00001', 'default')
    return stored.status.get_condition('Ready')


async def test_creates_all_children(client, reconciler, revision, request_):
    outcomes = await reconciler.reconcile(request_)

    assert [o.step for o in outcomes] == ['deployment', 'autoscaler', 'configmap', 'service']
    assert all(o.ok for o in outcomes)
    assert client.stored(Namespace, 'default') is not None
    for kind, name in zip(CHILD_KINDS, CHILD_NAMES):
        child = client.stored(kind, name, 'default')
        assert child is not None
        [ref] = child.metadata.ownerReferences
        assert ref.controller is True
        assert ref.blockOwnerDeletion is True
        assert ref.kind == 'Revision'
        assert ref.name == 'hello-00001'
        assert ref.uid == revision.metadata.uid


async def test_create_path_sets_status(client, reconciler, revision, request_):
    await reconciler.reconcile(request_)

    stored = client.stored(Revision, 'hello-00001', 'default')
    assert stored.status.serviceName == 'hello-00001-service'
    condition = ready_condition(client)
    assert condition.status == 'False'
    assert condition.reason == 'Deploying'
    assert len(client.calls_of('replace_status', Revision)) == 1


async def test_second_cycle_creates_nothing(client, reconciler, revision, request_):
    await reconciler.reconcile(request_)
    created = len(client.calls_of('create'))

    await reconciler.reconcile(request_)

    assert len(client.calls_of('create')) == created
    assert len(client.calls_of('replace_status', Revision)) == 2


async def test_deployment_failure_aborts(client, reconciler, revision, request_, make_api_error):
    error = make_api_error(500)
    client.fail('create', Deployment, error)

    with pytest.raises(type(error)):
        await reconciler.reconcile(request_)

    assert len(client.calls_of('create', Deployment)) == 1
    for kind in CHILD_KINDS[1:]:
        assert not client.calls_of('create', kind)
    assert not client.calls_of('replace_status')


async def test_deployment_get_failure_aborts_without_create(client, reconciler, revision, request_, make_api_error):
    error = make_api_error(503)
    client.fail('get', Deployment, error)

    with pytest.raises(type(error)):
        await reconciler.reconcile(request_)

    assert not client.calls_of('create', Deployment)
    assert not client.calls_of('replace_status')


async def test_secondary_failure_is_collected(client, reconciler, revision, request_):
    client.fail('create', HorizontalPodAutoscaler)

    outcomes = await reconciler.reconcile(request_)

    failed = [(o.step, o.error) for o in outcomes if not o.ok]
    assert [step for step, _ in failed] == ['autoscaler']
    assert client.stored(Deployment, CHILD_NAMES[0], 'default') is not None
    assert client.stored(ConfigMap, CHILD_NAMES[2], 'default') is not None
    assert client.stored(Service, CHILD_NAMES[3], 'default') is not None
    assert ready_condition(client).reason == 'Deploying'


async def test_service_failure_leaves_service_name_unset(client, reconciler, revision, request_):
    client.fail('create', Service)

    await reconciler.reconcile(request_)

    stored = client.stored(Revision, 'hello-00001', 'default')
    assert stored.status.serviceName is None
    assert ready_condition(client).reason == 'Deploying'


async def test_delete_path_deletes_children(client, reconciler, deleted_revision, request_):
    for kind, name in zip(CHILD_KINDS, CHILD_NAMES):
        client.add(kind(metadata=ObjectMeta(name=name, namespace='default')))

    outcomes = await reconciler.reconcile(request_)

    assert all(o.ok for o in outcomes)
    for kind, name in zip(CHILD_KINDS, CHILD_NAMES):
        assert client.stored(kind, name, 'default') is None
    deletes = client.calls_of('delete')
    assert [call[1] for call in deletes] == [k.__name__ for k in CHILD_KINDS]
    assert all(call[4] == CascadeType.FOREGROUND for call in deletes)
    condition = ready_condition(client)
    assert condition.status == 'False'
    assert condition.reason == 'Inactive'
    assert not client.calls_of('create', Deployment)


async def test_delete_path_tolerates_missing_children(client, reconciler, deleted_revision, request_):
    outcomes = await reconciler.reconcile(request_)

    assert all(o.ok for o in outcomes)
    assert not client.calls_of('delete')
    assert ready_condition(client).reason == 'Inactive'


async def test_delete_failure_does_not_abort(client, reconciler, deleted_revision, request_):
    for kind, name in zip(CHILD_KINDS, CHILD_NAMES):
        client.add(kind(metadata=ObjectMeta(name=name, namespace='default')))
    client.fail('delete', Deployment)

    outcomes = await reconciler.reconcile(request_)

    assert [o.step for o in outcomes if not o.ok] == ['deployment']
    assert client.stored(Deployment, CHILD_NAMES[0], 'default') is not None
    for kind, name in zip(CHILD_KINDS[1:], CHILD_NAMES[1:]):
        assert client.stored(kind, name, 'default') is None
    assert ready_condition(client).reason == 'Inactive'


async def test_delete_path_keeps_finalizer_by_default(client, reconciler, deleted_revision, request_):
    await reconciler.reconcile(request_)

    stored = client.stored(Revision, 'hello-00001', 'default')
    assert stored.metadata.finalizers == ['controller']


async def test_delete_path_releases_finalizer(client, settings, deleted_revision, request_):
    settings.release_finalizer = True
    reconciler = RevisionReconciler(client, settings)

    await reconciler.reconcile(request_)

    stored = client.stored(Revision, 'hello-00001', 'default')
    assert stored.metadata.finalizers == []


async def test_finalizer_kept_when_a_delete_failed(client, settings, deleted_revision, request_):
    settings.release_finalizer = True
    reconciler = RevisionReconciler(client, settings)
    client.add(Service(metadata=ObjectMeta(name=CHILD_NAMES[3], namespace='default')))
    client.fail('delete', Service)

    await reconciler.reconcile(request_)

    stored = client.stored(Revision, 'hello-00001', 'default')
    assert stored.metadata.finalizers == ['controller']


async def test_namespace_failure_is_retryable(client, reconciler, revision, request_):
    client.fail('create', Namespace)

    with pytest.raises(NamespaceError):
        await reconciler.reconcile(request_)

    assert not client.calls_of('create', Deployment)


async def test_namespace_created_concurrently(client, reconciler, revision, request_, make_api_error):
    client.fail('get', Namespace, ObjectNotFound(Namespace, 'default'))
    client.fail('create', Namespace, make_api_error(409))

    outcomes = await reconciler.reconcile(request_)

    assert all(o.ok for o in outcomes)
    assert client.stored(Deployment, CHILD_NAMES[0], 'default') is not None


async def test_existing_namespace_is_kept(client, reconciler, revision, request_):
    client.add(Namespace(metadata=ObjectMeta(name='default')))

    await reconciler.reconcile(request_)

    assert not client.calls_of('create', Namespace)


async def test_missing_revision(client, reconciler):
    with pytest.raises(ObjectNotFound):
        await reconciler.reconcile(Request('default', 'gone'))

    assert not client.calls_of('create')


@pytest.mark.parametrize('namespace, name', [
    ('', 'hello'),
    ('default', ''),
    ('default', 'a/b'),
])
async def test_malformed_request(client, reconciler, namespace, name):
    with pytest.raises(InvalidKeyError):
        await reconciler.reconcile(Request(namespace, name))

    assert not client.calls


async def test_children_of_different_revisions_do_not_collide(client, reconciler, revision_factory):
    client.add(revision_factory(name='a'))
    client.add(revision_factory(name='b'))

    await reconciler.reconcile(Request('default', 'a'))
    await reconciler.reconcile(Request('default', 'b'))

    assert client.stored(Deployment, 'a-deployment', 'default') is not None
    assert client.stored(Deployment, 'b-deployment', 'default') is not None


async def test_children_in_suffixed_namespace_have_no_owner(client, settings, revision, request_):
    settings.namespace_suffix = '-ela'
    reconciler = RevisionReconciler(client, settings)

    outcomes = await reconciler.reconcile(request_)

    assert all(o.ok for o in outcomes)
    assert client.stored(Namespace, 'default-ela') is not None
    for kind, name in zip(CHILD_KINDS, CHILD_NAMES):
        child = client.stored(kind, name, 'default-ela')
        assert child is not None
        assert not child.metadata.ownerReferences
