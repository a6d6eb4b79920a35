"""Client health-data store and its persistence."""

from .app_state import HealthStore, PersistedState
from .persistence import STORAGE_KEY, StateRepository, InMemoryStateRepository, FileStateRepository

__all__ = [
    'HealthStore', 'PersistedState',
    'STORAGE_KEY', 'StateRepository', 'InMemoryStateRepository', 'FileStateRepository',
]
