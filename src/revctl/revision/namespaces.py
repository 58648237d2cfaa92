import logging

import httpx
from lightkube.models.meta_v1 import ObjectMeta
from lightkube.resources.core_v1 import Namespace

from ..client import is_conflict
from ..exceptions import NamespaceError, ObjectNotFound


log = logging.getLogger(__name__)


async def ensure_namespace(client, name):
    """Ensure the namespace exists, creating it if needed.

    Losing a creation race to another worker counts as success. Any other
    failure is raised as NamespaceError so the request is retried.
    """
    try:
        await client.get(Namespace, name, cached=False)
        return name
    except ObjectNotFound:
        pass
    except httpx.HTTPError as e:
        raise NamespaceError(f'Failed to get namespace {name}: {e}') from e

    log.info('Creating namespace %s', name)
    try:
        await client.create(Namespace(metadata=ObjectMeta(name=name)))
    except httpx.HTTPError as e:
        if not is_conflict(e):
            raise NamespaceError(f'Failed to create namespace {name}: {e}') from e
        log.debug('Namespace %s was created concurrently', name)
    return name
