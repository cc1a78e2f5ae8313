"""Storage protocols.

Every store implements `StateStore`. Durable stores additionally implement
`RecoverableStateStore`; callers probe for it with `isinstance` and fall back
to built-in validation when it is absent.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pipeline_tracker.core.models import PipelineState


@runtime_checkable
class StateStore(Protocol):
    """Required contract: one pipeline state record per store."""

    def load(self) -> PipelineState | None:
        """Return the stored state, or None when no record exists."""
        ...

    def save(self, state: PipelineState) -> None:
        """Persist the whole state, replacing any previous record.

        Raises:
            StateValidationError: The record is structurally invalid.
            StorageError: The underlying write failed.
        """
        ...

    def clear(self) -> None:
        """Remove the record. Idempotent."""
        ...


@runtime_checkable
class RecoverableStateStore(Protocol):
    """Optional capability: validation, backup and restore."""

    def validate_state(self, state: PipelineState) -> list[str]:
        """Return every structural violation in `state` (empty when valid)."""
        ...

    def create_backup(self) -> None:
        """Copy the current record to the backup location (best-effort)."""
        ...

    def restore_from_backup(self) -> PipelineState | None:
        """Promote the backup to the primary record and return it, or None."""
        ...
