"""
The reconcile loop for revisions.

A live revision gets its child resources created, a revision marked for
deletion gets them deleted. Either way the Ready condition is updated
afterwards.
"""
import dataclasses
import logging
from typing import List, Optional

from ..config import Settings
from ..controller import Request
from .children import CHILDREN
from .namespaces import ensure_namespace
from .naming import revision_namespace
from .resource import Revision, RevisionStatus
from .status import (
    READY,
    REASON_DEPLOYING,
    REASON_INACTIVE,
    release_finalizer,
    update_status,
)


log = logging.getLogger(__name__)


class RevisionLoggerAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return '%s: %s' % (self.extra['request'], msg), kwargs


@dataclasses.dataclass
class Outcome:
    """The result of one best effort step of a reconcile cycle."""

    step: str
    error: Optional[Exception] = None

    @property
    def ok(self):
        return self.error is None


def failures(outcomes: List[Outcome]):
    return [(o.step, o.error) for o in outcomes if not o.ok]


class RevisionReconciler:
    """Reconciles revisions against the cluster.

    Everything the reconciler talks to is passed in, so that it can be driven
    by a fake client in tests.
    """

    def __init__(self, client, settings: Settings = None, children=CHILDREN):
        self.client = client
        self.settings = settings if settings is not None else Settings()
        self.children = tuple(children)

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.client!r}>'

    async def reconcile(self, request: Request):
        request.validate()
        logger = RevisionLoggerAdapter(log, {'request': request})
        logger.debug('running reconcile')

        # Raises ObjectNotFound if the revision is gone, which drops the
        # request.
        revision = await self.client.get(
            Revision, request.name, namespace=request.namespace
        )
        if revision.status is None:
            revision.status = RevisionStatus()

        namespace = await ensure_namespace(
            self.client,
            revision_namespace(request.namespace, self.settings.namespace_suffix),
        )

        if revision.metadata.deletionTimestamp is None:
            return await self.create_children(revision, namespace, logger)
        return await self.delete_children(revision, namespace, logger)

    async def create_children(self, revision, namespace, logger=log):
        outcomes = []
        for child in self.children:
            try:
                name = await child.reconcile(
                    self.client, revision, namespace, self.settings.children
                )
            except Exception as e:
                if child.primary:
                    logger.error('failed to create %s: %s', child.step, e)
                    raise
                logger.warning('failed to create %s: %s', child.step, e)
                outcomes.append(Outcome(child.step, e))
            else:
                outcomes.append(Outcome(child.step))
                if child.status_field is not None:
                    setattr(revision.status, child.status_field, name)

        revision.status.set_condition(READY, 'False', reason=REASON_DEPLOYING)
        logger.info('updating status, %s=False reason %s', READY, REASON_DEPLOYING)
        await update_status(self.client, revision)
        return outcomes

    async def delete_children(self, revision, namespace, logger=log):
        outcomes = []
        for child in self.children:
            try:
                deleted = await child.delete(self.client, revision, namespace)
            except Exception as e:
                logger.warning('failed to delete %s: %s', child.step, e)
                outcomes.append(Outcome(child.step, e))
            else:
                if deleted:
                    logger.info('deleted %s', child.step)
                outcomes.append(Outcome(child.step))

        revision.status.set_condition(READY, 'False', reason=REASON_INACTIVE)
        logger.info('updating status, %s=False reason %s', READY, REASON_INACTIVE)
        await update_status(self.client, revision)

        if self.settings.release_finalizer:
            failed = failures(outcomes)
            if failed:
                logger.info('keeping finalizer, failed steps: %s',
                    ', '.join(step for step, _ in failed))
            else:
                await release_finalizer(
                    self.client, revision, self.settings.finalizer
                )
        return outcomes
