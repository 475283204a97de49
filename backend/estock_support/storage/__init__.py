"""Storage module - provides interface and implementations for data persistence."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .knowledge_store import KnowledgeStore, load_default_manual
from .customer_store import CustomerStore
from .autosave_store import AutosaveStore

__all__ = [
    'StorageInterface', 'LocalStorage', 'KnowledgeStore', 'load_default_manual',
    'CustomerStore', 'AutosaveStore',
]
