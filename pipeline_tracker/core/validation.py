"""Input validation and structural validation of persisted state records.

Record validation collects every violation before failing so a corrupt or
hand-edited state file can be diagnosed in one pass.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Mapping, Sequence

from pipeline_tracker.core.errors import (
    InvalidCredentialError,
    InvalidInputError,
    InvalidStepNumberError,
    MissingInputError,
)
from pipeline_tracker.core.models import InfoPairs, StepStatus
from pipeline_tracker.logging_config import get_logger
from pipeline_tracker.utils.dates import parse_iso_datetime

logger = get_logger(__name__)

_CHANNEL_ID_PATTERN = re.compile(r"^\d+$")
_SCIENTIFIC_PATTERN = re.compile(r"^\d+(\.\d+)?[eE]\+?\d+$")
_PR_FIELDS = ("prTitle", "author", "repository", "branch")


# --- Action inputs ---


def validate_bot_token(token: str | None) -> str:
    """Return the bare bot token, without any `Bot ` prefix."""
    value = (token or "").strip()
    if value[:4].lower() == "bot ":
        value = value[4:].strip()
    if not value:
        raise MissingInputError("discord_bot_token")
    if any(ch.isspace() for ch in value):
        raise InvalidCredentialError(
            "discord_bot_token", "Invalid Discord bot token format: must not contain whitespace", code="INVALID_BOT_TOKEN"
        )
    return value


def normalize_channel_id(channel_id: str | None) -> str:
    """Return the channel id as a digit string.

    Channel ids copied through a spreadsheet arrive in scientific notation
    (`1.39589530256487E+18`); those are expanded to their integer form.
    """
    value = (channel_id or "").strip()
    if not value:
        raise MissingInputError("discord_channel_id")
    if _SCIENTIFIC_PATTERN.match(value):
        try:
            value = str(int(Decimal(value)))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidCredentialError(
                "discord_channel_id", f"Invalid Discord channel ID format: {channel_id}", code="INVALID_CHANNEL_ID"
            ) from exc
    if not _CHANNEL_ID_PATTERN.match(value):
        raise InvalidCredentialError(
            "discord_channel_id", f"Invalid Discord channel ID format: {channel_id}", code="INVALID_CHANNEL_ID"
        )
    return value


def require_text(value: str | None, field_name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise MissingInputError(field_name)
    return text


def parse_pr_number(raw: str | int | None) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool):
        number = raw
    else:
        text = require_text(raw, "pr_number").lstrip("#")
        if not text.isdigit():
            raise InvalidInputError("pr_number", f"Invalid pull request number: {raw}", code="INVALID_PR_NUMBER")
        number = int(text)
    if number < 0:
        raise InvalidInputError("pr_number", f"Invalid pull request number: {raw}", code="INVALID_PR_NUMBER")
    return number


def parse_step_count(raw: str | int | None, field_name: str) -> int:
    """Parse `step_number` / `total_steps` from action input text."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    text = require_text(raw, field_name)
    try:
        return int(text)
    except ValueError as exc:
        if field_name == "step_number":
            raise InvalidStepNumberError(text) from exc
        raise InvalidInputError(field_name, f"Invalid {field_name}: {text}", code="INVALID_TOTAL_STEPS") from exc


def validate_step_number(step_number: int, total_steps: int) -> None:
    if total_steps < 1 or step_number < 1 or step_number > total_steps:
        raise InvalidStepNumberError(step_number, total_steps)


def parse_additional_info(raw: str | None) -> InfoPairs:
    """Parse the `additional_info` action input.

    Accepts a JSON object (values stringified, key order kept) or a JSON list
    of `[key, value]` pairs. Anything else is logged and ignored: extra info is
    decoration, not worth failing a step over.
    """
    if raw is None or not raw.strip():
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("failed to parse additional_info JSON, continuing without it", error=str(exc))
        return []

    if isinstance(parsed, dict):
        return [(str(key), _stringify(value)) for key, value in parsed.items()]
    if isinstance(parsed, list) and all(isinstance(item, list) and len(item) == 2 for item in parsed):
        return [(str(key), _stringify(value)) for key, value in parsed]

    logger.warning("additional_info must be a JSON object, continuing without it", value_type=type(parsed).__name__)
    return []


def _stringify(value: object) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value) if isinstance(value, (dict, list, bool)) or value is None else str(value)


# --- Persisted records ---


def validate_state_record(record: object) -> list[str]:
    """Return every structural violation in a serialized pipeline state (empty when valid)."""
    if not isinstance(record, Mapping):
        return ["state must be an object"]

    diagnostics: list[str] = []

    if not isinstance(record.get("messageId"), str):
        diagnostics.append("messageId must be a string")

    pr_number = record.get("prNumber")
    if not isinstance(pr_number, int) or isinstance(pr_number, bool):
        diagnostics.append("prNumber must be an integer")
    elif pr_number < 0:
        diagnostics.append("prNumber must be >= 0")

    for field_name in _PR_FIELDS:
        value = record.get(field_name)
        if not isinstance(value, str) or not value.strip():
            diagnostics.append(f"{field_name} must be a non-empty string")

    steps = record.get("steps")
    if not isinstance(steps, list):
        diagnostics.append("steps must be an array")
    else:
        seen: set[int] = set()
        for index, step in enumerate(steps):
            _validate_step(index, step, seen, diagnostics)

    if not _is_timestamp(record.get("pipelineStartedAt")):
        diagnostics.append("pipelineStartedAt must be a timestamp")

    return diagnostics


def _validate_step(index: int, step: object, seen: set[int], diagnostics: list[str]) -> None:
    prefix = f"steps[{index}]"
    if not isinstance(step, Mapping):
        diagnostics.append(f"{prefix} must be an object")
        return

    number = step.get("number")
    if not isinstance(number, int) or isinstance(number, bool) or number < 1:
        diagnostics.append(f"{prefix}.number must be a positive integer")
    elif number in seen:
        diagnostics.append(f"{prefix}.number {number} is duplicated")
    else:
        seen.add(number)

    name = step.get("name")
    if not isinstance(name, str) or not name.strip():
        diagnostics.append(f"{prefix}.name must be a non-empty string")

    status = step.get("status")
    if not isinstance(status, str):
        diagnostics.append(f"{prefix}.status must be a string")
    elif status not in StepStatus.choices():
        diagnostics.append(f"{prefix}.status must be one of {list(StepStatus.choices())}")

    info = step.get("additionalInfo")
    if not isinstance(info, list) or not all(_is_info_pair(pair) for pair in info):
        diagnostics.append(f"{prefix}.additionalInfo must be an array of [string, string] pairs")

    completed_at = step.get("completedAt")
    if completed_at is not None and not _is_timestamp(completed_at):
        diagnostics.append(f"{prefix}.completedAt must be a timestamp")


def _is_info_pair(pair: object) -> bool:
    return (
        isinstance(pair, Sequence)
        and not isinstance(pair, str)
        and len(pair) == 2
        and all(isinstance(item, str) for item in pair)
    )


def _is_timestamp(value: object) -> bool:
    if isinstance(value, datetime):
        return True
    if not isinstance(value, str) or not value.strip():
        return False
    return parse_iso_datetime(value) is not None
