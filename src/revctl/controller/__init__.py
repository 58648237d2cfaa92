from .request import (
    Request,
    request_for_object,
    requests_from_event,
)

from .controller import (
    Controller,
    set_controller_reference,
    set_owner_reference,
)

__all__ = [
    'Controller',
    'Request',
    'request_for_object',
    'requests_from_event',
    'set_controller_reference',
    'set_owner_reference',
]
