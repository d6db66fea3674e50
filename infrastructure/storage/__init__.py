"""Collection store backends behind ``plantcare.services.storage_gateway``.

Both expose ``get(name) -> list`` and ``set(name, records)``; the local store
is synchronous, the remote store's methods are coroutines.
"""

from infrastructure.storage.local_store import FileLock, LocalCollectionStore, validate_collection_name
from infrastructure.storage.remote_store import RemoteCollectionStore

__all__ = [
    "FileLock",
    "LocalCollectionStore",
    "RemoteCollectionStore",
    "validate_collection_name",
]
