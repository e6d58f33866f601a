"""
Delivery of approved flashcards to Anki with an offline queue.
"""

from .anki_client import AnkiConnectClient
from .queue import (
    QUEUE_KEY,
    DeliveryReport,
    DeliveryStatus,
    QueuedItem,
    QueueStatus,
    SyncQueueManager,
)
from .storage import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "QUEUE_KEY",
    "AnkiConnectClient",
    "DeliveryReport",
    "DeliveryStatus",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "QueueStatus",
    "QueuedItem",
    "SyncQueueManager",
]
