"""Constants used across the pipeline tracker.

This module defines shared constants to ensure consistency.
"""

MAIN_MODULE = "__main__"

# State file (relative to the working directory of the CI job)
STATE_FILE_NAME = ".discord-pipeline-state"
BACKUP_SUFFIX = ".backup"
STATE_FORMAT_VERSION = "1.0.0"

# Config discovery
CONFIG_PATH_ENV = "PIPELINE_TRACKER_CONFIG"
DEFAULT_CONFIG_FILE = ".pipeline-tracker.yml"
LOG_LEVEL_ENV = "PIPELINE_TRACKER_LOG_LEVEL"
LOG_FORMAT_ENV = "PIPELINE_TRACKER_LOG_FORMAT"

# Discord API
DISCORD_API_BASE_URL = "https://discord.com/api/v10"
DISCORD_REQUEST_TIMEOUT_S = 30.0
DISCORD_MAX_RETRIES = 3
DISCORD_BASE_DELAY_S = 1.0
DISCORD_MAX_DELAY_S = 30.0
DISCORD_JITTER_RATIO = 0.1

# Discord embed limits (requests over these are rejected with HTTP 400)
EMBED_TITLE_MAX = 256
EMBED_DESCRIPTION_MAX = 4096
EMBED_FIELD_NAME_MAX = 256
EMBED_FIELD_VALUE_MAX = 1024
EMBED_FIELDS_MAX = 25
EMBED_FOOTER_MAX = 2048
TRUNCATION_SUFFIX = "…"

# Host output (GitHub Actions)
GITHUB_OUTPUT_ENV = "GITHUB_OUTPUT"
ACTIONS = ("init", "step", "complete", "fail")
