import logging

import anyio
from anyio import TASK_STATUS_IGNORED
from anyio.abc import TaskStatus

from ..exceptions import QueueShutDown
from ..tasks import Task

from .limiters import default_rate_limiter


log = logging.getLogger(__name__)


class Fifo:
    """Insertion ordered set of items."""

    def __init__(self):
        self._items = {}

    def push(self, item):
        self._items[item] = None

    def pop(self):
        k = next(iter(self._items))
        del self._items[k]
        return k

    def __contains__(self, item):
        return item in self._items

    def __len__(self):
        return len(self._items)


class Workqueue(Task):
    """A rate limited, deduplicating work queue.

    Every item is in at most one of these states:

    - queued: waiting to be handed out by get()
    - processing: handed out by get(), waiting for done()
    - dirty: needs processing, which is true for all queued items and for
      items that were added again while they were being processed

    An item that is being processed is never handed out a second time before
    done() is called for it, no matter how often it is added meanwhile.
    """

    def __init__(self, rate_limiter=None, name=None):
        super().__init__()
        if rate_limiter is None:
            rate_limiter = default_rate_limiter()
        self.name = name
        self._rate_limiter = rate_limiter
        self._buffer = []
        self._queue = Fifo()
        self._delayed = {}
        self._processing = {}
        self._dirty = {}
        self._shutting_down = False
        self._condition = anyio.Condition()

    def __len__(self):
        return len(self._queue)

    def __repr__(self):
        name = f' {self.name}' if self.name else ''
        return (
            f'<Workqueue{name} queued: {len(self)}, delayed: {len(self._delayed)},'
            f' processing: {len(self._processing)}, buffered: {len(self._buffer)}>'
        )

    @property
    def shutting_down(self):
        return self._shutting_down

    def is_processing(self, item):
        return item in self._processing

    async def _add(self, item):
        async with self._condition:
            if self._shutting_down:
                log.debug('ignoring %r, queue is shutting down', item)
                return
            if item in self._dirty:
                # Already waiting for processing, nothing to do.
                return
            self._dirty[item] = None
            if item not in self._processing:
                self._queue.push(item)
                self._condition.notify()

    async def add(self, item):
        """Add marks item as needing processing."""
        if self.is_running:
            await self._add(item)
        else:
            # If the queue has not yet been started we buffer items
            # and add them during startup.
            self._buffer.append(item)

    async def get(self):
        """Get blocks until it can return an item to be processed.

        Raises QueueShutDown once the queue is shut down and no queued items
        are left.
        """
        async with self._condition:
            while len(self._queue) == 0 and not self._shutting_down:
                await self._condition.wait()
            if len(self._queue) == 0:
                raise QueueShutDown()
            item = self._queue.pop()
            self._processing[item] = None
            del self._dirty[item]
            return item

    async def done(self, item):
        """Done marks item as done processing, and if it has been marked as dirty
        again while it was being processed, it will be re-added to the queue for
        re-processing.
        """
        async with self._condition:
            del self._processing[item]
            if item in self._dirty:
                self._queue.push(item)
                self._condition.notify()
            if self._shutting_down:
                # Wake up anybody waiting for the queue to drain.
                self._condition.notify_all()

    async def _add_after(self, item, delay):
        self._delayed[item] = delay
        try:
            await anyio.sleep(delay)
            await self.add(item)
        finally:
            # Only used for statistics.
            self._delayed.pop(item, None)

    async def add_after(self, item, delay):
        """Add the given item after delay seconds."""
        if delay <= 0:
            await self.add(item)
        elif self._task_group is None:
            raise RuntimeError(f'{self!r} is not running')
        else:
            self._task_group.start_soon(self._add_after, item, delay)

    async def add_rate_limited(self, item):
        """Add the given item once the rate limiter allows it."""
        await self.add_after(item, self._rate_limiter.delay(item))

    async def forget(self, item):
        """Stop tracking failures for the given item."""
        self._rate_limiter.forget(item)

    async def num_requeues(self, item):
        return self._rate_limiter.count(item)

    async def shutdown(self):
        """Stop accepting new items. Blocked and future calls to get() hand out
        the remaining items and then raise QueueShutDown.
        """
        async with self._condition:
            self._shutting_down = True
            self._condition.notify_all()

    async def shutdown_with_drain(self):
        """Like shutdown() but also wait until all handed out items are done."""
        await self.shutdown()
        async with self._condition:
            while self._processing:
                await self._condition.wait()

    async def __call__(self, task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        try:
            async with anyio.create_task_group() as tg:
                self._task_group = tg

                self._running.set()
                # Add any buffered items.
                while self._buffer:
                    await self._add(self._buffer.pop(0))

                task_status.started()
                await self._stop.wait()

                # Pending delayed adds are pointless once we stop.
                tg.cancel_scope.cancel()
        finally:
            self._task_group = None
