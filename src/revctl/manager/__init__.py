from .manager import ALL_NAMESPACES, Manager, signal_handler

__all__ = [
    'ALL_NAMESPACES',
    'Manager',
    'signal_handler',
]
