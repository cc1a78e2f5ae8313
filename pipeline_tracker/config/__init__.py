"""Tracker settings (file-based; credentials come from inputs or the environment)."""

from pipeline_tracker.config.loader import load_tracker_config
from pipeline_tracker.config.schema import DiscordConfig, RetryConfig, StorageConfig, TrackerConfig

__all__ = ["DiscordConfig", "RetryConfig", "StorageConfig", "TrackerConfig", "load_tracker_config"]
