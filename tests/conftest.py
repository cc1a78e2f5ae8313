"""Pytest configuration for pipeline tracker tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import structlog

from pipeline_tracker.core.models import PipelineState, PrInfo, StepRecord, StepStatus

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def pytest_collection_modifyitems(config, items):
    """Set per-marker timeouts: unit=1s, integration=5s."""
    for item in items:
        if "unit" in item.keywords:
            item.add_marker(pytest.mark.timeout(1))
        elif "integration" in item.keywords:
            item.add_marker(pytest.mark.timeout(5))


@pytest.fixture(autouse=True)
def _reset_structlog():
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


class FakeClock:
    """Deterministic `now()` that tests advance by hand."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pr_info() -> PrInfo:
    return PrInfo(number=42, title="Add X", author="alice", repository="o/r", branch="main")


@pytest.fixture
def make_state(pr_info):
    def _make(message_id: str = "m-1", steps: list[StepRecord] | None = None) -> PipelineState:
        return PipelineState(message_id=message_id, pr_info=pr_info, started_at=T0, steps=list(steps or []))

    return _make


def make_step(number: int, name: str, status: StepStatus, *, completed: bool | None = None) -> StepRecord:
    """StepRecord with `completed_at` set iff the status is terminal (unless overridden)."""
    stamp = completed if completed is not None else status.is_terminal
    return StepRecord(
        number=number,
        name=name,
        status=status,
        additional_info=[],
        completed_at=T0 + timedelta(minutes=number) if stamp else None,
    )
