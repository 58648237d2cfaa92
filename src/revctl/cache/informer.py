import dataclasses
import logging
import random

import anyio
import httpx

from lightkube.core import resource as lkr

from ..tasks import Task
from .events import CreateEvent, DeleteEvent, UpdateEvent


log = logging.getLogger(__name__)


def _resync_after():
    # 10 hours plus up to 9 minutes, so informers do not all relist at once.
    return 10 * 60 * 60 + 60 * random.randint(0, 9)


def is_same_version(a, b):
    version = a.metadata.resourceVersion
    return version is not None and version == b.metadata.resourceVersion


@dataclasses.dataclass(eq=False)
class Informer(Task):
    """Mirrors one resource, in one namespace or in all of them, into a store.

    The informer lists the resource, then watches it from the listed
    resource version. Every `resync_after` seconds, and whenever listing or
    watching fails, it starts over with a fresh list. Objects that vanished
    in between are reported as deleted.

    Each change is sent to all subscribed streams in the order it was seen.
    Awaiting the informer blocks until the first list completed.
    """

    api_client: object
    store: object
    resource: lkr.Resource
    namespace: str = None
    resync_after: int = dataclasses.field(default_factory=_resync_after)
    timeout: int = 60
    retry_delay: float = 5
    resource_version: str = None

    def __post_init__(self):
        super().__init__()
        self._streams = {}

    def __repr__(self):
        info = lkr.api_info(self.resource).resource
        out = [f'{info.api_version}/{info.kind}']
        if self.namespace is not None:
            out.append(self.namespace)
        if self.resource_version:
            out.append(self.resource_version)
        return '<Informer %s>' % ' '.join(out)

    def add_stream(self, stream, key=None):
        self._streams[stream if key is None else key] = stream

    def has_stream(self, key):
        return key in self._streams

    async def _send(self, event):
        for key, stream in list(self._streams.items()):
            try:
                await stream.send(event)
            except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                log.debug('%r: unsubscribing closed stream %r', self, key)
                del self._streams[key]

    async def _upsert(self, obj):
        try:
            old = self.store.get(obj)
        except KeyError:
            self.store.add(obj)
            await self._send(CreateEvent(obj))
            return
        if not is_same_version(obj, old):
            self.store.update(obj)
            await self._send(UpdateEvent(old, obj))

    async def _remove(self, obj):
        self.store.delete(obj)
        await self._send(DeleteEvent(obj))

    async def _apply(self, change, obj):
        match change:
            case 'ADDED' | 'MODIFIED':
                await self._upsert(obj)
            case 'DELETED':
                await self._remove(obj)
            case _:
                log.warning('%r: ignoring unknown change %r', self, change)

    async def _list(self):
        seen = set()
        with anyio.fail_after(self.timeout):
            listing = self.api_client.list(self.resource, namespace=self.namespace)
            async for obj in listing:
                seen.add(self.store.key_func(obj))
                await self._upsert(obj)
        self.resource_version = listing.resourceVersion

        for obj in self.store.list():
            if self.store.key_func(obj) not in seen:
                await self._remove(obj)
        log.debug('%r: listed %i objects', self, len(seen))

    async def _watch(self):
        log.debug('%r: watching', self)
        async for change, obj in self.api_client.watch(
            self.resource,
            resource_version=self.resource_version,
            namespace=self.namespace,
        ):
            await self._apply(change, obj)

    async def _list_and_watch(self):
        while True:
            try:
                await self._list()
                self._running.set()

                with anyio.move_on_after(self.resync_after) as resync:
                    await self._watch()
                if resync.cancelled_caught:
                    log.debug('%r: resyncing', self)
                    continue
                log.debug('%r: watch closed by the server', self)
            except TimeoutError:
                log.error('%r: listing timed out after %ss', self, self.timeout)
            except httpx.HTTPError as e:
                # lightkube.ApiError is a httpx.HTTPStatusError.
                log.error('%r: list/watch failed: %s', self, e)
            await anyio.sleep(self.retry_delay)

    async def __call__(self):
        log.debug('starting %r', self)
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._list_and_watch)
                await self
                log.info('started %r', self)

                await self._stop.wait()
                tg.cancel_scope.cancel()
        finally:
            for stream in self._streams.values():
                stream.close()
            self._streams.clear()
            log.info('stopped %r', self)
