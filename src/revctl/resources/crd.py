"""
Decorators that turn plain classes into lightkube resources backed by a
CustomResourceDefinition.

    @crd.resource(group='example.com', version='v1')
    @crd.printcolumn('Ready', '.status.ready')
    class Thing:
        apiVersion: str = 'example.com/v1'
        kind: str = 'Thing'
        metadata: ObjectMeta = None
        status: ThingStatus = None

Every resource is namespaced. A `status` field whose type is decorated with
`@crd.subresource` enables the status subresource and gives the resource
class a `Status` attribute to write it through.
"""
import dataclasses

from dataclasses import dataclass
from typing import dataclass_transform

from lightkube.core.schema import DictMixin
from lightkube.core import resource as lkr

from lightkube.resources.apiextensions_v1 import (
    CustomResourceDefinition,
)

from lightkube.models.apiextensions_v1 import (
    CustomResourceDefinitionNames,
    CustomResourceDefinitionSpec,
    CustomResourceColumnDefinition,
)
from lightkube.models.meta_v1 import ObjectMeta

from .registry import custom_resource_registry
from .resources import Resource


_resource_verbs = [
    'delete',
    'deletecollection',
    'get',
    'global_list',
    'global_watch',
    'list',
    'patch',
    'post',
    'put',
    'watch',
]

_status_verbs = ['get', 'patch', 'put']


class ModelMixin(DictMixin):
    @classmethod
    def from_dict(cls, d, lazy=True):
        # Our models are plain dataclasses, lightkube can not load them lazily.
        if isinstance(d, cls):
            return d
        return super().from_dict(d, lazy=False)


def _class_dict(cls):
    # A copied __dict__ must not carry the slots of the original class.
    cls_dict = dict(cls.__dict__)
    cls_dict.pop('__dict__', None)
    cls_dict.pop('__weakref__', None)
    return cls_dict


def _with_api_info(name, bases, cls_dict, api_info):
    derived = type(name, bases, cls_dict)
    derived._api_info = api_info
    return derived


# @see https://www.brendanp.com/pretty-printing-with-kubebuilder/
def printcolumn(name, jsonpath, type='string', description=None, priority=None):
    """Add a column to the `kubectl get` output of the resource."""
    def _wrap(cls):
        column = CustomResourceColumnDefinition(
            name=name,
            type=type,
            jsonPath=jsonpath,
            description=description,
            priority=priority,
        )
        # Decorators run bottom up, prepend to keep the written order.
        version = custom_resource_registry.get_crd_version(cls)
        version.additionalPrinterColumns.insert(0, column)
        return cls

    return _wrap


@dataclass_transform()
def model(cls):
    """Turn the decorated class into a (de)serializable dataclass."""
    model_cls = type(cls.__name__, (ModelMixin,), _class_dict(cls))
    if not dataclasses.is_dataclass(model_cls):
        model_cls = dataclass(model_cls)
    return model_cls


@dataclass_transform()
def subresource(cls):
    """Like model, and marks the class as the status subresource."""
    model_cls = model(cls)
    model_cls.__subresource = True
    return model_cls


def _is_subresource(field):
    return field is not None and getattr(field.type, '__subresource', False)


@dataclass_transform()
def resource(group, version, short_names=None):
    """Turn the decorated class into a namespaced lightkube resource and
    register a CustomResourceDefinition for it.

    The class must declare `apiVersion` and `kind` fields so that they are
    part of every serialized object.
    """
    def _wrap(cls):
        if not dataclasses.is_dataclass(cls):
            cls = dataclass(cls, kw_only=True)

        kind = cls.__name__
        singular = kind.lower()
        plural = f'{singular}es' if singular.endswith('s') else f'{singular}s'
        cls_dict = _class_dict(cls)
        definition = lkr.ResourceDef(group, version, kind)

        resource_cls = _with_api_info(
            kind,
            (Resource, lkr.NamespacedResourceG, ModelMixin),
            cls_dict,
            lkr.ApiInfo(resource=definition, plural=plural, verbs=_resource_verbs),
        )

        crd_version = custom_resource_registry.get_crd_version(cls)
        crd_version.name = version
        crd_version.served = True
        crd_version.storage = True

        if _is_subresource(cls.__dataclass_fields__.get('status')):
            crd_version.subresources['status'] = {}
            resource_cls.Status = _with_api_info(
                f'{kind}Status',
                (lkr.NamespacedSubResource, ModelMixin),
                cls_dict,
                lkr.ApiInfo(
                    resource=definition,
                    parent=definition,
                    plural=plural,
                    verbs=_status_verbs,
                    action='status',
                ),
            )

        custom_resource_registry.add(CustomResourceDefinition(
            apiVersion='apiextensions.k8s.io/v1',
            kind='CustomResourceDefinition',
            metadata=ObjectMeta(name=f'{plural}.{group}'),
            spec=CustomResourceDefinitionSpec(
                group=group,
                names=CustomResourceDefinitionNames(
                    kind=kind,
                    listKind=f'{kind}List',
                    plural=plural,
                    singular=singular,
                    shortNames=short_names,
                ),
                scope='Namespaced',
                versions=[crd_version],
            ),
        ))
        return resource_cls

    return _wrap
