"""Document store implementations."""

from record_workflow.stores.memory import MemoryStore
from record_workflow.stores.notion import NotionStore

__all__ = ["MemoryStore", "NotionStore"]
