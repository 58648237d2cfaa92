import logging

import anyio
from anyio import TASK_STATUS_IGNORED
from anyio.abc import TaskStatus

from lightkube.models.meta_v1 import OwnerReference

from ..tasks import Task
from ..workqueue import Workqueue
from ..source import EventSource
from ..invocation import invoke
from ..exceptions import (
    ObjectNotFound,
    PermanentError,
    QueueShutDown,
    Requeue,
    TemporaryError,
)

from .request import requests_from_event


log = logging.getLogger(__name__)


class ReconcilerLoggerAdapter(logging.LoggerAdapter):
    """Prefixes the log message with reconcilers number"""

    def process(self, msg, kwargs):
        reconciler = 'reconciler[%i]' % self.extra['num']
        return '%s: %s' % (reconciler, msg), kwargs


def set_owner_reference(owner, subject, block_owner_deletion=False, controller=False):
    """Record owner as owner of subject, so that the api servers garbage
    collector removes subject once owner is gone.
    """
    owner_namespace = owner.metadata.namespace
    if owner_namespace is not None and subject.metadata.namespace != owner_namespace:
        raise PermanentError(
            f'cross-namespace owner reference: {owner_namespace}/{owner.metadata.name}'
            f' can not own an object in {subject.metadata.namespace}'
        )
    if subject.metadata.ownerReferences is None:
        subject.metadata.ownerReferences = []
    if controller:
        for existing_ref in subject.metadata.ownerReferences:
            if existing_ref.controller and existing_ref.uid != owner.metadata.uid:
                raise PermanentError(f'already owned by a controller: {existing_ref}')
    ref = OwnerReference(
        apiVersion=owner.apiVersion,
        kind=owner.kind,
        name=owner.metadata.name,
        uid=owner.metadata.uid,
        blockOwnerDeletion=block_owner_deletion,
        controller=controller,
    )
    subject.metadata.ownerReferences.append(ref)
    return ref


def set_controller_reference(owner, subject):
    return set_owner_reference(
        owner,
        subject,
        block_owner_deletion=True,
        controller=True,
    )


class Controller(Task):
    """Runs a pool of workers that feed requests from a workqueue to a
    reconcile function.

    The workqueue guarantees that a request is never processed by two
    workers at the same time. The outcome of the reconcile function decides
    what happens to the request:

    - success: the request is forgotten
    - ObjectNotFound, PermanentError: the request is forgotten
    - TemporaryError, Requeue: the request is added again after the given delay
    - any other exception: the request is added again with rate limiting
    """

    def __init__(self, reconcile, resource=None, cache=None,
        name=None, concurrent_reconciles=1, wait_for_cache=True, rate_limiter=None):
        super().__init__()
        self.reconcile = reconcile
        self.resource = resource
        self.cache = cache
        self.name = name
        self.concurrent_reconciles = concurrent_reconciles
        self.wait_for_cache = wait_for_cache
        self.queue = Workqueue(rate_limiter=rate_limiter, name=name)
        self._event_sources = []

        if resource is not None:
            self._add_event_source(resource, requests_from_event)

    def __repr__(self):
        out = [self.__class__.__name__]
        if self.name is not None:
            out.append(self.name)
        if self.resource is not None:
            out.append(f'{self.resource.apiVersion}/{self.resource.kind}')
        return '<%s>' % ' '.join(out)

    @property
    def event_sources(self):
        return self._event_sources

    def _add_event_source(self, resource, handler):
        source = EventSource(self.queue, resource, handler)
        self._event_sources.append(source)
        return source

    def _connect_event_sources(self):
        if self.cache is None:
            return
        for source in self._event_sources:
            for informer in self.cache.get_informers_by(resource=source.resource):
                if not informer.has_stream(key=source):
                    informer.add_stream(source.stream, key=source)

    async def _reconciler(self, num):
        logger = ReconcilerLoggerAdapter(log, {'num': num})
        logger.debug('started')
        while True:
            try:
                request = await self.queue.get()
            except QueueShutDown:
                logger.debug('queue shut down, exiting')
                return
            logger.debug('processing %r', request)

            try:
                await invoke(self.reconcile, request)
            except ObjectNotFound as e:
                logger.debug(e)
                # If the object is gone there's no point to requeue the
                # request. So we give up and forget about it.
                await self.queue.forget(request)
            except PermanentError as e:
                logger.error(e)
                # The reconcile function signaled to us that it can not handle
                # this request so we give up and forget about it.
                await self.queue.forget(request)
            except TemporaryError as e:
                logger.debug('requeuing with delay %s %r', e.delay, request)
                await self.queue.forget(request)
                await self.queue.add_after(request, e.delay)
            except Requeue as e:
                await self.queue.forget(request)
                if e.after:
                    logger.debug('requeuing with delay %s %r', e.after, request)
                    await self.queue.add_after(request, e.after)
                else:
                    logger.debug('requeuing %r', request)
                    await self.queue.add(request)
            except Exception as e:
                # Unexpected error, log it and requeue with rate limiting.
                logger.exception('error syncing %r: %s', request, e)
                retries = await self.queue.num_requeues(request)
                logger.debug('requeuing with rate limiting %r, retries: %i', request, retries)
                await self.queue.add_rate_limited(request)
            else:
                # Success! Forget about this request.
                logger.info('successfully synced %r', request)
                await self.queue.forget(request)
            finally:
                # In any case, mark this request as done.
                logger.debug('done processing %r', request)
                await self.queue.done(request)

    async def _wait_for_cache(self):
        """Wait for the cache to sync. Returns False if stopped first."""
        if not self.wait_for_cache or self.cache is None:
            return True

        log.info('waiting for cache to sync')
        synced = False
        async with anyio.create_task_group() as tg:

            async def stopped():
                await self._stop.wait()
                tg.cancel_scope.cancel()

            tg.start_soon(stopped)
            await self.cache.synced
            synced = True
            tg.cancel_scope.cancel()
        return synced

    async def __call__(self, task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        log.debug('starting %s', self)

        try:
            async with anyio.create_task_group() as tg:
                self._task_group = tg

                await tg.start(self.queue)
                for source in self._event_sources:
                    await tg.start(source)
                self._connect_event_sources()

                log.info('started %s', self)
                # Inform any awaiters that we are ready.
                task_status.started()
                self._running.set()

                if await self._wait_for_cache():
                    async with anyio.create_task_group() as workers:
                        log.info('starting %i workers', self.concurrent_reconciles)
                        for num in range(self.concurrent_reconciles):
                            workers.start_soon(self._reconciler, num)

                        # Wait until told otherwise.
                        await self._stop.wait()

                        log.info('shutting down workers')
                        await self.queue.shutdown_with_drain()
                else:
                    log.info('stopped before the cache synced')
                    await self.queue.shutdown()

                # All workers are done, stop the queue and our event sources.
                tg.cancel_scope.cancel()

        finally:
            self._task_group = None
            log.info('stopped %s', self)

    async def run(self, workers=None, stop=None,
        task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        """Run the controller with the given number of workers until the
        stop event is set, then drain the workqueue and return.
        """
        if workers is not None:
            self.concurrent_reconciles = workers
        async with anyio.create_task_group() as tg:
            await tg.start(self)
            task_status.started()
            if stop is None:
                await self._stop.wait()
            else:
                await stop.wait()
                self.stop()
