from .base import EventStoreAdapter
from .memory import InMemoryEventStore

__all__ = ["EventStoreAdapter", "InMemoryEventStore"]
