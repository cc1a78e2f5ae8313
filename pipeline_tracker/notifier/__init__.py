"""Chat notifiers."""

from pipeline_tracker.notifier.base import HealthStatus, MessageNotifier
from pipeline_tracker.notifier.discord import DiscordNotifier
from pipeline_tracker.notifier.retry import RetryPolicy

__all__ = ["DiscordNotifier", "HealthStatus", "MessageNotifier", "RetryPolicy"]
