import pytest

from lightkube.models.meta_v1 import ObjectMeta
from lightkube.resources.core_v1 import ConfigMap, Namespace

from revctl.cache import Store
from revctl.cache.store import meta_namespace_key_func, object_key
from revctl.exceptions import StoreKeyError


def configmap(name, namespace='default', version='1'):
    return ConfigMap(metadata=ObjectMeta(name=name, namespace=namespace, resourceVersion=version))


def test_keys():
    assert meta_namespace_key_func(configmap('a')) == 'default/a'
    assert meta_namespace_key_func(Namespace(metadata=ObjectMeta(name='default'))) == 'default'
    assert object_key('a') == 'a'
    with pytest.raises(KeyError):
        object_key(None, 'default')
    with pytest.raises(StoreKeyError):
        meta_namespace_key_func(object())


def test_add_get_update_delete():
    store = Store()
    store.add(configmap('a'))

    assert 'default/a' in store
    assert store.get(configmap('a')).metadata.resourceVersion == '1'

    store.update(configmap('a', version='2'))
    assert store['default/a'].metadata.resourceVersion == '2'
    assert len(store) == 1

    store.delete(configmap('a'))
    assert 'default/a' not in store
    # Deleting twice is fine.
    store.delete(configmap('a'))
