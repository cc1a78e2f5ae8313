"""Remote notifier contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from pipeline_tracker.formatting.messages import DiscordMessage


@dataclass(frozen=True)
class HealthStatus:
    available: bool
    reason: str | None = None


@runtime_checkable
class MessageNotifier(Protocol):
    """Create and edit the one chat message that mirrors a pipeline.

    Every method raises `RemoteUnavailableError` on failure, except
    `health_check` which reports it.
    """

    async def send(self, message: DiscordMessage) -> str:
        """Post a new message and return its id."""
        ...

    async def update(self, message_id: str, message: DiscordMessage) -> None: ...

    async def delete(self, message_id: str) -> None: ...

    async def health_check(self) -> HealthStatus: ...
