import copy
import logging

from ..exceptions import ObjectNotFound


log = logging.getLogger(__name__)


READY = 'Ready'

REASON_DEPLOYING = 'Deploying'
REASON_INACTIVE = 'Inactive'


async def _get_live(client, revision):
    return await client.get(
        type(revision),
        revision.metadata.name,
        namespace=revision.metadata.namespace,
        cached=False,
    )


async def update_status(client, revision):
    """Write the status of revision to the api server.

    The status is copied onto a freshly read object so that changes other
    writers made to the rest of the object since it was cached are kept.
    """
    live = await _get_live(client, revision)
    live.status = copy.deepcopy(revision.status)
    return await client.replace_status(live)


async def release_finalizer(client, revision, finalizer):
    """Remove finalizer from the live revision, if present."""
    try:
        live = await _get_live(client, revision)
    except ObjectNotFound:
        return None
    finalizers = list(live.metadata.finalizers or [])
    if finalizer not in finalizers:
        return live
    live.metadata.finalizers = [f for f in finalizers if f != finalizer]
    log.info('%s/%s: releasing finalizer %s',
        revision.metadata.namespace, revision.metadata.name, finalizer)
    return await client.replace(live)
