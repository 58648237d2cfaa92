import dataclasses
import logging
import typing

import anyio
from anyio import TASK_STATUS_IGNORED
from anyio.abc import TaskStatus

from lightkube.core import resource as lkr

from .exceptions import StoreKeyError
from .tasks import Task


__all__ = [
    'EventSource',
]

log = logging.getLogger(__name__)


@dataclasses.dataclass(eq=False)
class EventSource(Task):
    """Receives informer events and turns them into workqueue requests.

    The handler is called with each event and returns the requests to add.
    Adding is idempotent, so a burst of events for the same object results
    in a single pending request.
    """

    queue: object
    resource: lkr.Resource
    handler: typing.Callable
    max_buffer_size: int = 100

    def __post_init__(self):
        Task.__init__(self)
        self.tx, self.rx = anyio.create_memory_object_stream(self.max_buffer_size)

    def __hash__(self):
        return id(self)

    def __repr__(self):
        api_version = self.resource._api_info.resource.api_version
        kind = self.resource._api_info.resource.kind
        return f'<{self.__class__.__name__} {api_version}/{kind}>'

    @property
    def stream(self):
        """A new send stream to hand to an informer."""
        return self.tx.clone()

    async def handle(self, event):
        log.debug('received event: %r', event)
        try:
            requests = self.handler(event)
            for request in requests or ():
                await self.queue.add(request)
        except StoreKeyError as e:
            log.error('dropping event %r: %s', event, e)

    async def event_stream_handler(self):
        async with self.rx:
            async for event in self.rx:
                await self.handle(event)

    def stop(self):
        if self._task_group:
            self._task_group.cancel_scope.cancel()

    async def __call__(self, task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        log.debug('starting %s', self)

        try:
            async with anyio.create_task_group() as tg:
                self._task_group = tg
                tg.start_soon(self.event_stream_handler)

                log.debug('started %s', self)
                # Inform any awaiters that we are ready.
                self._running.set()
                task_status.started()

                # Wait until told otherwise.
                await self._stop.wait()
                tg.cancel_scope.cancel()

        finally:
            self._task_group = None
            log.debug('stopped %s', self)
