"""
POSTURA Shared Module

Common utilities used across services.
"""

from .storage import (
    LocalStorageManager,
    ProfileStore,
    StoredFile,
    get_storage,
    get_profile_store,
)

__all__ = [
    'LocalStorageManager',
    'ProfileStore',
    'StoredFile',
    'get_storage',
    'get_profile_store',
]
