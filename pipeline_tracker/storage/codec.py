"""JSON record format for the pipeline state file.

Current format (checksummed envelope)::

    {"state": {...record...}, "metadata": {"version": "1.0.0", "lastUpdated": "...", "checksum": "<sha256>"}}

A bare record (no envelope) is still accepted on read, in either camelCase or
the older snake_case key spelling. Bare records carry no checksum.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, cast

from typing_extensions import NotRequired, TypedDict

from pipeline_tracker.constants import STATE_FORMAT_VERSION
from pipeline_tracker.core.errors import CorruptStateError
from pipeline_tracker.core.models import PipelineState, PrInfo, StepRecord, StepStatus
from pipeline_tracker.core.validation import validate_state_record
from pipeline_tracker.utils.dates import format_iso_datetime, parse_iso_datetime


class StepRecordDict(TypedDict):
    """Serialized step."""

    number: int
    name: str
    status: str
    additionalInfo: list[list[str]]
    completedAt: NotRequired[str]


class PipelineStateDict(TypedDict):
    """Serialized pipeline state."""

    messageId: str
    prNumber: int
    prTitle: str
    author: str
    repository: str
    branch: str
    steps: list[StepRecordDict]
    pipelineStartedAt: str


class StateMetadataDict(TypedDict):
    version: str
    lastUpdated: str
    checksum: str


class StateFileDict(TypedDict):
    state: PipelineStateDict
    metadata: StateMetadataDict


_LEGACY_RECORD_KEYS: Mapping[str, str] = MappingProxyType(
    {
        "message_id": "messageId",
        "pr_number": "prNumber",
        "pr_title": "prTitle",
        "pipeline_started_at": "pipelineStartedAt",
    }
)
_LEGACY_STEP_KEYS: Mapping[str, str] = MappingProxyType(
    {"additional_info": "additionalInfo", "completed_at": "completedAt"}
)


def state_to_record(state: PipelineState) -> PipelineStateDict:
    return {
        "messageId": state.message_id,
        "prNumber": state.pr_info.number,
        "prTitle": state.pr_info.title,
        "author": state.pr_info.author,
        "repository": state.pr_info.repository,
        "branch": state.pr_info.branch,
        "steps": [_step_to_record(step) for step in state.steps],
        "pipelineStartedAt": format_iso_datetime(state.started_at),
    }


def _step_to_record(step: StepRecord) -> StepRecordDict:
    record: StepRecordDict = {
        "number": step.number,
        "name": step.name,
        "status": step.status.value,
        "additionalInfo": [[key, value] for key, value in step.additional_info],
    }
    if step.completed_at is not None:
        record["completedAt"] = format_iso_datetime(step.completed_at)
    return record


def state_from_record(record: Mapping[str, object]) -> PipelineState:
    """Build a state from a record that already passed `validate_state_record`."""
    steps_raw = cast(list[Mapping[str, object]], record["steps"])
    return PipelineState(
        message_id=cast(str, record["messageId"]),
        pr_info=PrInfo(
            number=cast(int, record["prNumber"]),
            title=cast(str, record["prTitle"]),
            author=cast(str, record["author"]),
            repository=cast(str, record["repository"]),
            branch=cast(str, record["branch"]),
        ),
        started_at=_required_datetime(record["pipelineStartedAt"]),
        steps=[_step_from_record(step) for step in steps_raw],
    )


def _step_from_record(record: Mapping[str, object]) -> StepRecord:
    info = cast(list[list[str]], record["additionalInfo"])
    completed_raw = record.get("completedAt")
    return StepRecord(
        number=cast(int, record["number"]),
        name=cast(str, record["name"]),
        status=StepStatus(cast(str, record["status"])),
        additional_info=[(key, value) for key, value in info],
        completed_at=parse_iso_datetime(completed_raw) if completed_raw is not None else None,
    )


def _required_datetime(value: object) -> datetime:
    parsed = parse_iso_datetime(value)
    if parsed is None:
        raise CorruptStateError(f"Unparseable timestamp in state record: {value!r}")
    return parsed


def compute_checksum(record: Mapping[str, object]) -> str:
    """SHA-256 over the canonical serialization (sorted keys, no whitespace)."""
    canonical = json.dumps(record, ensure_ascii=True, separators=(",", ":"), sort_keys=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def build_state_file(record: PipelineStateDict, last_updated: datetime) -> StateFileDict:
    return {
        "state": record,
        "metadata": {
            "version": STATE_FORMAT_VERSION,
            "lastUpdated": format_iso_datetime(last_updated),
            "checksum": compute_checksum(cast(Mapping[str, object], record)),
        },
    }


def decode_state_file(raw: str | bytes) -> PipelineState:
    """Parse and verify state file contents (text, or raw UTF-8 bytes).

    Raises:
        CorruptStateError: Undecodable bytes, invalid JSON, checksum mismatch,
            or a record that fails structural validation.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptStateError(f"State file is not valid UTF-8: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorruptStateError(f"JSON parsing error: {exc}") from exc

    if not isinstance(data, dict):
        raise CorruptStateError("State file must contain a JSON object")

    if "state" in data and "metadata" in data:
        record = data["state"]
        metadata = data["metadata"]
        checksum = metadata.get("checksum") if isinstance(metadata, dict) else None
        if checksum and isinstance(record, dict) and compute_checksum(record) != checksum:
            raise CorruptStateError("State checksum mismatch")
    else:
        record = _upgrade_legacy_record(data)

    diagnostics = validate_state_record(record)
    if diagnostics:
        raise CorruptStateError("State validation failed: " + "; ".join(diagnostics))
    return state_from_record(cast(Mapping[str, object], record))


def _upgrade_legacy_record(data: dict[str, object]) -> dict[str, object]:
    record = {_LEGACY_RECORD_KEYS.get(key, key): value for key, value in data.items()}
    steps = record.get("steps")
    if isinstance(steps, list):
        record["steps"] = [
            {_LEGACY_STEP_KEYS.get(key, key): value for key, value in step.items()} if isinstance(step, dict) else step
            for step in steps
        ]
    return record
