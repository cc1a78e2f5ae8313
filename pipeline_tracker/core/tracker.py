"""Pipeline tracker: merges step observations into persisted state and mirrors them to chat.

Each CI step runs the tracker in a fresh process, so the state store is the
only continuity between calls. Every mutating action therefore reloads state
first, saves before talking to the remote, and treats the remote as
best-effort: a failed send or edit is a warning, never a failed action.
Only invalid input raises out of these methods.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Sequence

from pipeline_tracker.core.errors import (
    InvalidStatusError,
    RemoteUnavailableError,
    StateValidationError,
    StorageError,
)
from pipeline_tracker.core.models import (
    KnownStatus,
    PipelineState,
    PrInfo,
    StepStatus,
    UnknownStatus,
    parse_status,
)
from pipeline_tracker.core.validation import (
    parse_pr_number,
    require_text,
    validate_state_record,
    validate_step_number,
)
from pipeline_tracker.formatting.messages import (
    build_completion_message,
    build_init_message,
    build_step_update_message,
)
from pipeline_tracker.logging_config import get_logger
from pipeline_tracker.notifier.base import MessageNotifier
from pipeline_tracker.storage.base import RecoverableStateStore, StateStore
from pipeline_tracker.storage.codec import state_to_record
from pipeline_tracker.utils.dates import utc_now

logger = get_logger(__name__)


@dataclass
class ActionOutcome:
    """What an action managed to do. Degraded paths add a warning instead of raising."""

    state_saved: bool = False
    remote_synced: bool = False
    message_id: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


class PipelineTracker:
    """Reconciles one pipeline's state file with its Discord message."""

    def __init__(
        self,
        notifier: MessageNotifier,
        store: StateStore,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._notifier = notifier
        self._store = store
        self._clock = clock

    @property
    def notifier(self) -> MessageNotifier:
        return self._notifier

    @property
    def store(self) -> StateStore:
        return self._store

    async def init_pipeline(
        self,
        pr_number: str | int,
        pr_title: str,
        author: str,
        repository: str,
        branch: str,
    ) -> ActionOutcome:
        """Start a fresh pipeline record and post the "pipeline started" message."""
        pr_info = PrInfo(
            number=parse_pr_number(pr_number),
            title=require_text(pr_title, "pr_title"),
            author=require_text(author, "author"),
            repository=require_text(repository, "repository"),
            branch=require_text(branch, "branch"),
        )
        now = self._clock()
        state = PipelineState(message_id="", pr_info=pr_info, started_at=now)
        outcome = ActionOutcome()

        try:
            state.message_id = await self._notifier.send(build_init_message(pr_info, now))
            outcome.remote_synced = True
        except RemoteUnavailableError as exc:
            self._warn(outcome, "Failed to send pipeline start message; continuing without a message id", exc)

        try:
            self._save_state_with_validation(state)
            outcome.state_saved = True
        except (StateValidationError, StorageError) as exc:
            self._warn(outcome, "Failed to save initial pipeline state", exc)

        outcome.message_id = state.message_id or None
        logger.info(
            "pipeline initialized",
            pr_number=pr_info.number,
            repository=pr_info.repository,
            message_id=outcome.message_id,
        )
        return outcome

    async def update_step(
        self,
        step_number: int,
        total_steps: int,
        step_name: str,
        status: str | StepStatus,
        additional_info: Sequence[tuple[str, str]] | None = None,
    ) -> ActionOutcome:
        """Record a step observation, persist it, then edit the message.

        Raises:
            InvalidStepNumberError: `step_number` is outside `1..total_steps`.
            InvalidStatusError: `status` matches no known alias.
            MissingInputError: `step_name` is blank.
        """
        validate_step_number(step_number, total_steps)
        resolved = _resolve_status(status)
        name = require_text(step_name, "step_name")
        info = [(str(key), str(value)) for key, value in additional_info or ()]

        outcome = ActionOutcome()
        state = self._load_state(outcome)
        if state is None:
            self._warn(outcome, "No pipeline state found (was init run?); skipping step update")
            return outcome

        now = self._clock()
        state.record_step(step_number, name, resolved, info, now)

        try:
            self._save_state_with_validation(state)
        except (StateValidationError, StorageError) as exc:
            logger.error("failed to save pipeline state, aborting remote update", step_number=step_number, error=str(exc))
            outcome.warnings.append(f"Failed to save pipeline state; remote update aborted: {exc}")
            return outcome
        outcome.state_saved = True
        outcome.message_id = state.message_id or None

        if not state.message_id:
            self._warn(outcome, "No Discord message id recorded; skipping message update")
            return outcome

        try:
            await self._notifier.update(state.message_id, build_step_update_message(state, step_number, now))
            outcome.remote_synced = True
        except RemoteUnavailableError as exc:
            self._warn(outcome, "Failed to update Discord message; local state is kept", exc)

        logger.info(
            "pipeline step recorded",
            step_number=step_number,
            total_steps=total_steps,
            status=resolved.value,
            remote_synced=outcome.remote_synced,
        )
        return outcome

    async def complete_pipeline(self) -> ActionOutcome:
        """Post the final summary and clear the state record."""
        outcome = ActionOutcome()
        state = self._load_state(outcome)

        if state is None:
            self._warn(outcome, "No pipeline state found; nothing to summarize")
        elif not state.message_id:
            self._warn(outcome, "No Discord message id recorded; skipping completion message")
        else:
            outcome.message_id = state.message_id
            try:
                await self._notifier.update(state.message_id, build_completion_message(state, self._clock()))
                outcome.remote_synced = True
            except RemoteUnavailableError as exc:
                self._warn(outcome, "Failed to post completion message", exc)

        try:
            self._store.clear()
        except (StorageError, OSError) as exc:
            self._warn(outcome, "Failed to clear pipeline state", exc)

        logger.info("pipeline completed", remote_synced=outcome.remote_synced)
        return outcome

    async def fail_pipeline(self, step_name: str, error_message: str) -> ActionOutcome:
        """Record a single failed step carrying the error text."""
        message = require_text(error_message, "error_message")
        return await self.update_step(1, 1, step_name, StepStatus.FAILED, [("error", message)])

    def _load_state(self, outcome: ActionOutcome) -> PipelineState | None:
        try:
            return self._store.load()
        except (StorageError, OSError) as exc:
            self._warn(outcome, "Failed to load pipeline state", exc)
            return None

    def _save_state_with_validation(self, state: PipelineState) -> None:
        """Validate with the store's own rules when it has them, then save."""
        if isinstance(self._store, RecoverableStateStore):
            diagnostics = self._store.validate_state(state)
        else:
            diagnostics = validate_state_record(state_to_record(state))
        if diagnostics:
            raise StateValidationError(diagnostics)
        self._store.save(state)

    @staticmethod
    def _warn(outcome: ActionOutcome, message: str, exc: Exception | None = None, **fields: Any) -> None:
        if exc is not None:
            logger.warning(message, error=str(exc), **fields)
            outcome.warnings.append(f"{message}: {exc}")
        else:
            logger.warning(message, **fields)
            outcome.warnings.append(message)


def _resolve_status(status: str | StepStatus) -> StepStatus:
    if isinstance(status, StepStatus):
        return status
    parsed = parse_status(status or "")
    if isinstance(parsed, UnknownStatus):
        raise InvalidStatusError(parsed.raw)
    assert isinstance(parsed, KnownStatus)
    return parsed.status
