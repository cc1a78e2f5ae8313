"""Text helpers shared by the config loader and the message builders."""

import os
import re

from pipeline_tracker.constants import TRUNCATION_SUFFIX

_ENV_REFERENCE = re.compile(r"\$\{([^}]+)\}")


def _substitute_env(match: re.Match[str]) -> str:
    return os.environ.get(match.group(1), match.group(0))


def expand_env_vars(value: object) -> object:
    """Replace `${NAME}` references in loaded YAML with environment values.

    Walks nested mappings and lists. References to unset variables are left
    as written so the schema can report them.
    """
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(_substitute_env, value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def truncate(text: str, limit: int, suffix: str = TRUNCATION_SUFFIX) -> str:
    """Clip text to `limit` characters, marking the cut with `suffix`."""
    if len(text) <= limit:
        return text
    if limit <= len(suffix):
        return text[:limit]
    return text[: limit - len(suffix)] + suffix
