from chat_widget.storage.backends import (
    KeyValueStorage,
    MemoryStorage,
    SQLiteStorage,
    StorageError,
)
from chat_widget.storage.identity import IdentityStore
from chat_widget.storage.session_store import DurableSessionStore

__all__ = [
    "KeyValueStorage",
    "MemoryStorage",
    "SQLiteStorage",
    "StorageError",
    "IdentityStore",
    "DurableSessionStore",
]
