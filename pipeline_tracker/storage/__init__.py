"""Pipeline state persistence."""

from pipeline_tracker.storage.base import RecoverableStateStore, StateStore
from pipeline_tracker.storage.file_store import FileStateStore
from pipeline_tracker.storage.memory import InMemoryStateStore

__all__ = ["FileStateStore", "InMemoryStateStore", "RecoverableStateStore", "StateStore"]
