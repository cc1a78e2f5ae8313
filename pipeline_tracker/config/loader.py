import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

from pipeline_tracker.config.schema import TrackerConfig
from pipeline_tracker.constants import CONFIG_PATH_ENV, DEFAULT_CONFIG_FILE
from pipeline_tracker.logging_config import get_logger
from pipeline_tracker.utils import expand_env_vars

logger = get_logger(__name__)


def _warn_unknown_keys(model: BaseModel, path: str, config_path: Path) -> None:
    """Recursively warn about unknown keys in a model and its nested models."""
    if model.model_extra:
        logger.warning("unknown config keys", section=path, config_path=str(config_path), keys=list(model.model_extra))

    for field_name, field_value in model.__dict__.items():
        if isinstance(field_value, BaseModel):
            _warn_unknown_keys(field_value, f"{path}.{field_name}", config_path)


def resolve_config_path(path: Optional[Path] = None) -> Path:
    """Explicit path, else `PIPELINE_TRACKER_CONFIG`, else `.pipeline-tracker.yml` in the working directory."""
    if path is not None:
        return path
    env_path = os.getenv(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return Path.cwd() / DEFAULT_CONFIG_FILE


def load_tracker_config(path: Optional[Path] = None, *, load_env_file: bool = True) -> TrackerConfig:
    """Load and validate tracker settings.

    A missing or unreadable file yields defaults. `${VAR}` references are
    expanded from the environment, after a `.env` in the working directory
    (if any) has been loaded.

    Raises:
        pydantic.ValidationError: The file parses but holds invalid values.
    """
    if load_env_file:
        load_dotenv(Path.cwd() / ".env")

    config_path = resolve_config_path(path)
    if not config_path.exists():
        return TrackerConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("failed to read config file, using defaults", config_path=str(config_path), error=str(e))
        return TrackerConfig()

    if not isinstance(raw, dict):
        logger.warning("config file is not a mapping, using defaults", config_path=str(config_path))
        return TrackerConfig()

    model = TrackerConfig.model_validate(expand_env_vars(raw))
    _warn_unknown_keys(model, "root", config_path)
    return model
