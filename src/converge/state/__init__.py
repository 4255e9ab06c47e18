"""State module - durable record of managed resources."""

from .models import STATE_FORMAT_VERSION, RecordStatus, StateDocument, StateRecord
from .store import StateStore, migrate_document
from .lock import StateLock

__all__ = [
    "STATE_FORMAT_VERSION",
    "RecordStatus",
    "StateDocument",
    "StateRecord",
    "StateStore",
    "StateLock",
    "migrate_document",
]
