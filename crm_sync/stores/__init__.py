"""Record store capabilities and reference implementations."""

from crm_sync.stores.base import LocalStore, RemoteStore
from crm_sync.stores.memory import InMemoryLocalStore, InMemoryRemoteStore, build_stores

__all__ = [
    "InMemoryLocalStore",
    "InMemoryRemoteStore",
    "LocalStore",
    "RemoteStore",
    "build_stores",
]
