import copy
import logging

import anyio
from anyio import TASK_STATUS_IGNORED
from anyio.abc import TaskStatus

from lightkube.core import resource as lkr

from ..tasks import Task
from ..exceptions import ObjectNotFound
from .store import Store, object_key
from .informer import Informer


log = logging.getLogger(__name__)


class Cache(Task):
    """Eventually consistent local view of the watched resources.

    Each resource has one store, filled by one informer per watched
    namespace, or a single informer when watching all namespaces. Readers
    get deep copies, so they can modify what they got without touching the
    store.
    """

    def __init__(self, api_client, informer_options=None):
        super().__init__()
        self.api_client = api_client
        self.informer_options = informer_options or {}
        self._stores = {}
        self._informers = []

    def __repr__(self):
        kinds = sorted(lkr.api_info(r).resource.kind for r in self._stores)
        return f'<Cache {", ".join(kinds)}>'

    @property
    def informers(self):
        return list(self._informers)

    @property
    def synced(self):
        """Awaitable that resolves once every informer listed its resource."""
        return self._wait_for_sync()

    async def _wait_for_sync(self):
        for informer in self._informers:
            await informer
        log.debug('%r synced', self)

    def is_watched_resource(self, resource):
        return resource in self._stores

    def get_informers_by(self, resource=None, namespace=None):
        return [
            informer for informer in self._informers
            if resource in (None, informer.resource)
            and namespace in (None, informer.namespace)
        ]

    def get_informer(self, resource, namespace=None):
        """Return the informer for resource in namespace, create it if needed.
        A namespace of None means all namespaces.
        """
        for informer in self.get_informers_by(resource):
            if informer.namespace == namespace:
                return informer
        if self.is_running:
            raise RuntimeError(f'{self!r}: can not add informers while running')
        store = self._stores.setdefault(resource, Store())
        informer = Informer(
            self.api_client,
            store,
            resource,
            namespace=namespace,
            **self.informer_options,
        )
        self._informers.append(informer)
        return informer

    def stop(self):
        log.debug('stopping %r', self)
        self._stop.set()

    async def __call__(self, task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        try:
            async with anyio.create_task_group() as tg:
                for informer in self._informers:
                    tg.start_soon(informer)

                log.info('started %r', self)
                self._running.set()
                task_status.started()

                await self._stop.wait()
                tg.cancel_scope.cancel()
        finally:
            log.info('stopped %r', self)

    def _store(self, resource):
        try:
            return self._stores[resource]
        except KeyError:
            raise RuntimeError(f'{self!r}: {resource} is not watched') from None

    async def get(self, resource, namespace=None, name=None):
        try:
            obj = self._store(resource)[object_key(name, namespace)]
        except KeyError as e:
            raise ObjectNotFound(resource, name, namespace=namespace) from e
        return copy.deepcopy(obj)

    async def list(self, resource, namespace=None):
        return [
            copy.deepcopy(obj)
            for obj in self._store(resource).list()
            if namespace is None or obj.metadata.namespace == namespace
        ]
