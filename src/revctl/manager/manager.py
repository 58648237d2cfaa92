import functools
import logging
import signal

import uvloop
import anyio
from anyio import open_signal_receiver
from anyio import TASK_STATUS_IGNORED
from anyio.abc import TaskStatus

from lightkube import AsyncClient as LightkubeAsyncClient

from .. import exceptions
from ..cache import Cache
from ..client import AsyncClient
from ..config import Settings
from ..controller import Controller
from ..revision import Revision, RevisionReconciler
from ..workqueue import default_rate_limiter


log = logging.getLogger(__name__)


# lightkube lists and watches all namespaces when given this namespace.
ALL_NAMESPACES = '*'


async def signal_handler(stop: anyio.Event, scope: anyio.CancelScope):
    """Drain and stop on the first signal, cancel everything on the second."""
    with open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            if signum == signal.SIGINT:
                print('Ctrl+C pressed!')
            else:
                print('Terminated!')

            if stop.is_set():
                scope.cancel()
                return
            stop.set()


class Manager:
    """Wires the api client, cache, workqueue and controller together and
    runs them until told to stop.
    """

    def __init__(self, settings: Settings = None, api_client=None):
        self.settings = settings if settings is not None else Settings()
        self.api_client = api_client
        self.cache = None
        self.client = None
        self.reconciler = None
        self.controller = None
        self.debug = False

    def __repr__(self):
        return f'<Manager namespaces: {self.namespaces}>'

    @property
    def namespaces(self):
        """The namespaces revisions are watched in."""
        if self.settings.all_namespaces:
            return [ALL_NAMESPACES]
        if self.settings.namespaces:
            return list(dict.fromkeys(self.settings.namespaces))
        if self.api_client is not None:
            return [self.api_client.namespace]
        return []

    def setup(self):
        if self.api_client is None:
            self.api_client = LightkubeAsyncClient()

        self.cache = Cache(
            self.api_client,
            informer_options={'resync_after': self.settings.resync_after},
        )
        for namespace in self.namespaces:
            self.cache.get_informer(Revision, namespace=namespace)

        self.client = AsyncClient(self.api_client, self.cache)
        self.reconciler = RevisionReconciler(self.client, self.settings)
        self.controller = Controller(
            self.reconciler.reconcile,
            resource=Revision,
            cache=self.cache,
            name='revisions',
            concurrent_reconciles=self.settings.workers,
            rate_limiter=default_rate_limiter(self.settings.queue),
        )
        log.debug('setup %r', self)

    def run(self, debug=False):
        self.debug = debug
        anyio.run(
            functools.partial(self, setup_signal_handler=True),
            backend_options={'loop_factory': uvloop.new_event_loop},
        )

    async def _run_controller(self, stop, task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        await self.controller.run(self.settings.workers, stop, task_status=task_status)
        # The workqueue is drained, the cache has nobody left to serve.
        self.cache.stop()

    async def __call__(self, stop: anyio.Event = None, setup_signal_handler=False):
        if self.controller is None:
            self.setup()
        if stop is None:
            stop = anyio.Event()

        log.info('starting %s', self)
        try:
            async with anyio.create_task_group() as tg:
                if setup_signal_handler:
                    tg.start_soon(signal_handler, stop, tg.cancel_scope)

                async with anyio.create_task_group() as components:
                    # The controller connects to the informers before they
                    # start listing, so no initial event is missed.
                    await components.start(self._run_controller, stop)
                    await components.start(self.cache)

                tg.cancel_scope.cancel()
        except* exceptions.Error as eg:
            if self.debug:
                raise eg
            error_messages = []
            for error in exceptions.iterate_errors(eg):
                error_messages.append(str(error))
            raise exceptions.FatalError(' '.join(error_messages)) from eg

        log.info('exiting %s', self)
