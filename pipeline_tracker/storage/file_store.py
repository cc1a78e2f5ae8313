"""File-backed pipeline state store.

One record per working directory, written atomically (tmp file + fsync +
`os.replace`). Before each save the current record is copied to a sibling
backup file, provided it still decodes cleanly, so the backup always mirrors
the last known-good write. Loading a corrupt record promotes the backup; when
that fails too the store reports "no state" instead of raising.
"""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Callable

from pipeline_tracker.constants import BACKUP_SUFFIX, STATE_FILE_NAME
from pipeline_tracker.core.errors import CorruptStateError, StateValidationError, StorageError
from pipeline_tracker.core.models import PipelineState
from pipeline_tracker.core.validation import validate_state_record
from pipeline_tracker.logging_config import get_logger
from pipeline_tracker.storage.codec import build_state_file, decode_state_file, state_to_record
from pipeline_tracker.utils.dates import utc_now

logger = get_logger(__name__)


class FileStateStore:
    """Durable store implementing both `StateStore` and `RecoverableStateStore`."""

    def __init__(
        self,
        directory: Path | None = None,
        *,
        file_name: str = STATE_FILE_NAME,
        backup_suffix: str = BACKUP_SUFFIX,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        base = directory if directory is not None else Path.cwd()
        self._path = base / file_name
        self._backup_path = base / f"{file_name}{backup_suffix}"
        self._clock = clock

    @property
    def file_path(self) -> Path:
        return self._path

    @property
    def backup_path(self) -> Path:
        return self._backup_path

    def load(self) -> PipelineState | None:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("failed to read pipeline state, attempting recovery", path=str(self._path), error=str(exc))
            return self.restore_from_backup()

        try:
            return decode_state_file(raw)
        except CorruptStateError as exc:
            logger.warning(
                "pipeline state is corrupt, attempting recovery from backup", path=str(self._path), error=str(exc)
            )
            return self.restore_from_backup()

    def save(self, state: PipelineState) -> None:
        record = state_to_record(state)
        diagnostics = validate_state_record(record)
        if diagnostics:
            raise StateValidationError(diagnostics)

        self.create_backup()
        payload = build_state_file(record, self._clock())
        self._write_atomic(self._path, json.dumps(payload, indent=2, ensure_ascii=False))
        logger.debug("saved pipeline state", path=str(self._path), steps=len(state.steps))

    def clear(self) -> None:
        for path in (self._path, self._backup_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(f"File system error: {exc}") from exc
        logger.debug("cleared pipeline state", path=str(self._path))

    def validate_state(self, state: PipelineState) -> list[str]:
        return validate_state_record(state_to_record(state))

    def create_backup(self) -> None:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("failed to read pipeline state for backup", path=str(self._path), error=str(exc))
            return

        try:
            decode_state_file(raw)
        except CorruptStateError as exc:
            logger.warning("not backing up corrupt pipeline state", path=str(self._path), error=str(exc))
            return

        try:
            self._write_atomic(self._backup_path, raw)
        except StorageError as exc:
            logger.warning("failed to write pipeline state backup", path=str(self._backup_path), error=str(exc))

    def restore_from_backup(self) -> PipelineState | None:
        try:
            raw = self._backup_path.read_bytes()
        except FileNotFoundError:
            logger.warning("no pipeline state backup available", path=str(self._backup_path))
            return None
        except OSError as exc:
            logger.error("failed to read pipeline state backup", path=str(self._backup_path), error=str(exc))
            return None

        try:
            state = decode_state_file(raw)
        except CorruptStateError as exc:
            logger.error("pipeline state backup is corrupt too", path=str(self._backup_path), error=str(exc))
            return None

        try:
            self._write_atomic(self._path, raw)
        except StorageError as exc:
            logger.error("failed to promote pipeline state backup", path=str(self._path), error=str(exc))
            return None

        logger.info("recovered pipeline state from backup", path=str(self._path), steps=len(state.steps))
        return state

    def _write_atomic(self, path: Path, content: str | bytes) -> None:
        data = content.encode("utf-8") if isinstance(content, str) else content
        tmp_path = path.with_name(f"{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                pass
            raise StorageError(f"File system error: {exc}") from exc
