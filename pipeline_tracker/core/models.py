"""Data models for tracked pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class StepStatus(str, Enum):
    """Lifecycle status of one pipeline step."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def color(self) -> int:
        return _STATUS_COLORS[self]

    @property
    def emoji(self) -> str:
        return _STATUS_EMOJI[self]

    @classmethod
    def choices(cls) -> tuple[str, ...]:
        return tuple(member.value for member in cls)


TERMINAL_STATUSES = frozenset({StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.SKIPPED})

_STATUS_COLORS: Mapping[StepStatus, int] = MappingProxyType(
    {
        StepStatus.PENDING: 0x808080,
        StepStatus.RUNNING: 0x0099FF,
        StepStatus.SUCCESS: 0x00FF00,
        StepStatus.FAILED: 0xFF0000,
        StepStatus.SKIPPED: 0xFFFF00,
    }
)

_STATUS_EMOJI: Mapping[StepStatus, str] = MappingProxyType(
    {
        StepStatus.PENDING: "⏳",
        StepStatus.RUNNING: "🔄",
        StepStatus.SUCCESS: "✅",
        StepStatus.FAILED: "❌",
        StepStatus.SKIPPED: "⏭️",
    }
)

_STATUS_ALIASES: Mapping[str, StepStatus] = MappingProxyType(
    {
        "pending": StepStatus.PENDING,
        "waiting": StepStatus.PENDING,
        "running": StepStatus.RUNNING,
        "in_progress": StepStatus.RUNNING,
        "in-progress": StepStatus.RUNNING,
        "success": StepStatus.SUCCESS,
        "passed": StepStatus.SUCCESS,
        "completed": StepStatus.SUCCESS,
        "failed": StepStatus.FAILED,
        "error": StepStatus.FAILED,
        "skipped": StepStatus.SKIPPED,
        "ignore": StepStatus.SKIPPED,
    }
)


@dataclass(frozen=True)
class KnownStatus:
    """Status string resolved to a canonical value."""

    status: StepStatus


@dataclass(frozen=True)
class UnknownStatus:
    """Status string that matched no alias; keeps the caller's original text."""

    raw: str


StatusParseResult = KnownStatus | UnknownStatus


def parse_status(raw: str) -> StatusParseResult:
    """Resolve a status alias case-insensitively ("passed" -> success, "in-progress" -> running, ...)."""
    resolved = _STATUS_ALIASES.get(raw.strip().lower())
    if resolved is None:
        return UnknownStatus(raw=raw)
    return KnownStatus(status=resolved)


InfoPairs = list[tuple[str, str]]


@dataclass
class StepRecord:
    """One observed pipeline step."""

    number: int
    name: str
    status: StepStatus
    additional_info: InfoPairs = field(default_factory=list)
    completed_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status.is_terminal

    def observe(self, name: str, status: StepStatus, additional_info: InfoPairs, now: datetime) -> None:
        """Overwrite the step with a new observation.

        `completed_at` is stamped on the first entry into a terminal status and
        kept while the step stays terminal. Going back to pending/running drops
        it, so a stamp is present exactly when the status is terminal.
        """
        self.name = name
        self.status = status
        self.additional_info = list(additional_info)
        if status.is_terminal:
            if self.completed_at is None:
                self.completed_at = now
        else:
            self.completed_at = None


@dataclass(frozen=True)
class PrInfo:
    """Pull request the pipeline runs for. Never changes after init."""

    number: int
    title: str
    author: str
    repository: str
    branch: str


@dataclass
class PipelineState:
    """The persisted aggregate: which message to edit and what has been observed so far."""

    message_id: str
    pr_info: PrInfo
    started_at: datetime
    steps: list[StepRecord] = field(default_factory=list)

    def find_step(self, number: int) -> StepRecord | None:
        for step in self.steps:
            if step.number == number:
                return step
        return None

    def record_step(
        self,
        number: int,
        name: str,
        status: StepStatus,
        additional_info: InfoPairs,
        now: datetime,
    ) -> StepRecord:
        """Find-or-insert a step by number and apply the observation.

        New steps are appended, so `steps` keeps discovery order.
        """
        step = self.find_step(number)
        if step is None:
            step = StepRecord(number=number, name=name, status=status)
            self.steps.append(step)
        step.observe(name, status, additional_info, now)
        return step

    @property
    def has_failures(self) -> bool:
        return any(step.status is StepStatus.FAILED for step in self.steps)

    @property
    def has_skipped(self) -> bool:
        return any(step.status is StepStatus.SKIPPED for step in self.steps)


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int
    percentage: int

    @property
    def is_finished(self) -> bool:
        return self.total > 0 and self.completed == self.total


def compute_progress(steps: list[StepRecord]) -> Progress:
    total = len(steps)
    completed = sum(1 for step in steps if step.is_completed)
    # Half rounds up (12.5 -> 13), unlike round()'s half-to-even.
    percentage = (completed * 200 + total) // (total * 2) if total > 0 else 0
    return Progress(completed=completed, total=total, percentage=percentage)
