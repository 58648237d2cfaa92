from .events import (
    CreateEvent,
    UpdateEvent,
    DeleteEvent,
)
from .store import Store
from .informer import Informer
from .cache import Cache

__all__ = [
    'Cache',
    'CreateEvent',
    'DeleteEvent',
    'Informer',
    'Store',
    'UpdateEvent',
]
