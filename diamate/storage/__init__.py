"""Storage module - device key-value storage interface and implementations."""

from .interface import StorageInterface
from .local_storage import LocalStorage

__all__ = ['StorageInterface', 'LocalStorage']
