"""In-memory state store for tests and single-process use.

Implements only the required `StateStore` contract; the tracker falls back to
its own validation for stores like this one.
"""

from __future__ import annotations

import copy

from pipeline_tracker.core.models import PipelineState


class InMemoryStateStore:
    def __init__(self, state: PipelineState | None = None) -> None:
        self._state = copy.deepcopy(state)

    def load(self) -> PipelineState | None:
        # Copies keep callers from mutating the stored record without a save.
        return copy.deepcopy(self._state)

    def save(self, state: PipelineState) -> None:
        self._state = copy.deepcopy(state)

    def clear(self) -> None:
        self._state = None
