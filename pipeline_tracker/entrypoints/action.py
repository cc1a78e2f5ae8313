"""GitHub Action / CLI entrypoint: run one tracker action and report the outcome.

Every option defaults to the matching `INPUT_<NAME>` variable the Actions
runner exports for `with:` inputs, so the same module serves both
`uses: ./` steps and local shell runs:

    discord-pipeline-tracker step --step-number 2 --total-steps 4 --step-name Test --status success

Exit code 1 (and `success=false` plus `error=<message>`) is reserved for
invalid input and invalid configuration. Remote and storage trouble is
logged and the action still reports success.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import uuid
from pathlib import Path
from typing import Mapping

from pydantic import ValidationError

from pipeline_tracker import __version__
from pipeline_tracker.config import TrackerConfig, load_tracker_config
from pipeline_tracker.constants import ACTIONS, GITHUB_OUTPUT_ENV, MAIN_MODULE
from pipeline_tracker.core.errors import InvalidActionError, TrackerError
from pipeline_tracker.core.tracker import ActionOutcome, PipelineTracker
from pipeline_tracker.core.validation import parse_additional_info, parse_step_count
from pipeline_tracker.logging_config import get_logger, setup_logging
from pipeline_tracker.notifier import DiscordNotifier, RetryPolicy
from pipeline_tracker.storage import FileStateStore

logger = get_logger(__name__)


def _input(name: str, *fallback_envs: str) -> str:
    """Action input `name` from the runner environment, else the first set fallback."""
    for env_name in (f"INPUT_{name.upper()}", *fallback_envs):
        value = os.getenv(env_name)
        if value:
            return value
    return ""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="discord-pipeline-tracker",
        description="Track a CI pipeline in a single, continuously edited Discord message.",
    )
    parser.add_argument(
        "action",
        nargs="?",
        default=_input("action"),
        help=f"One of: {', '.join(ACTIONS)} (default: INPUT_ACTION).",
    )
    parser.add_argument("--pr-number", default=_input("pr_number"), help="Pull request number (init).")
    parser.add_argument("--pr-title", default=_input("pr_title"), help="Pull request title (init).")
    parser.add_argument("--author", default=_input("author"), help="Pull request author (init).")
    parser.add_argument("--repository", default=_input("repository"), help="owner/repo (init).")
    parser.add_argument("--branch", default=_input("branch"), help="Source branch (init).")
    parser.add_argument("--step-number", default=_input("step_number"), help="1-based step number (step).")
    parser.add_argument("--total-steps", default=_input("total_steps"), help="Total number of steps (step).")
    parser.add_argument("--step-name", default=_input("step_name"), help="Step name (step, fail).")
    parser.add_argument("--status", default=_input("status"), help="Step status or alias (step).")
    parser.add_argument(
        "--additional-info",
        default=_input("additional_info"),
        help='JSON object of extra details, e.g. \'{"duration": "5s"}\' (step).',
    )
    parser.add_argument("--error-message", default=_input("error_message"), help="Failure description (fail).")
    parser.add_argument(
        "--discord-bot-token",
        default=_input("discord_bot_token", "DISCORD_BOT_TOKEN"),
        help="Bot token (default: INPUT_DISCORD_BOT_TOKEN or DISCORD_BOT_TOKEN).",
    )
    parser.add_argument(
        "--discord-channel-id",
        default=_input("discord_channel_id", "DISCORD_CHANNEL_ID"),
        help="Target channel id (default: INPUT_DISCORD_CHANNEL_ID or DISCORD_CHANNEL_ID).",
    )
    parser.add_argument("--config", type=Path, default=None, help="Settings file (default: .pipeline-tracker.yml).")
    parser.add_argument("--log-level", default=None, help="Log level override (DEBUG, INFO, WARNING, ...).")
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Probe channel access before running the action (failures are logged, not fatal).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def write_outputs(outputs: Mapping[str, str]) -> None:
    """Append outputs to the runner's `GITHUB_OUTPUT` file, or print `key=value` lines."""
    output_path = os.getenv(GITHUB_OUTPUT_ENV)
    if not output_path:
        for key, value in outputs.items():
            print(f"{key}={value}")
        return

    lines: list[str] = []
    for key, value in outputs.items():
        if "\n" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
            lines.append(f"{key}<<{delimiter}\n{value}\n{delimiter}")
        else:
            lines.append(f"{key}={value}")
    with open(output_path, "a", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


def build_tracker(args: argparse.Namespace, config: TrackerConfig) -> PipelineTracker:
    """Wire the Discord notifier and file store from CLI inputs and settings."""
    retry = config.discord.retry
    notifier = DiscordNotifier(
        args.discord_bot_token,
        args.discord_channel_id,
        api_base_url=config.discord.api_base_url,
        timeout_s=config.discord.request_timeout_s,
        retry_policy=RetryPolicy(
            max_retries=retry.max_retries,
            base_delay_s=retry.base_delay_s,
            max_delay_s=retry.max_delay_s,
            jitter_ratio=retry.jitter_ratio,
        ),
    )
    store = FileStateStore(
        config.storage.directory,
        file_name=config.storage.state_file,
        backup_suffix=config.storage.backup_suffix,
    )
    return PipelineTracker(notifier, store)


async def run_action(tracker: PipelineTracker, action: str, args: argparse.Namespace) -> ActionOutcome:
    if action == "init":
        logger.info("initializing pipeline tracker", pr_number=args.pr_number)
        return await tracker.init_pipeline(args.pr_number, args.pr_title, args.author, args.repository, args.branch)
    if action == "step":
        step_number = parse_step_count(args.step_number, "step_number")
        total_steps = parse_step_count(args.total_steps, "total_steps")
        info = parse_additional_info(args.additional_info)
        logger.info("updating step", step_number=step_number, step_name=args.step_name)
        return await tracker.update_step(step_number, total_steps, args.step_name, args.status, info)
    if action == "complete":
        logger.info("completing pipeline")
        return await tracker.complete_pipeline()
    if action == "fail":
        logger.info("recording pipeline failure", step_name=args.step_name)
        return await tracker.fail_pipeline(args.step_name, args.error_message)
    raise InvalidActionError(action)


async def _run(args: argparse.Namespace, config: TrackerConfig, action: str) -> ActionOutcome:
    tracker = build_tracker(args, config)
    if args.health_check:
        health = await tracker.notifier.health_check()
        if not health.available:
            logger.warning("discord channel is not reachable", reason=health.reason)
    return await run_action(tracker, action, args)


def _fail(message: str) -> int:
    write_outputs({"error": message, "success": "false"})
    return 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = load_tracker_config(args.config)
    except ValidationError as exc:
        logger.error("invalid tracker configuration", error=str(exc))
        return _fail(f"Invalid configuration: {exc.error_count()} error(s); see log for details")
    if config.log_level and not args.log_level:
        setup_logging(config.log_level)

    action = (args.action or "").strip().lower()
    try:
        if action not in ACTIONS:
            raise InvalidActionError(args.action or "")
        outcome = asyncio.run(_run(args, config, action))
    except TrackerError as exc:
        logger.error("pipeline tracker action failed", action=action, code=exc.code, error=str(exc))
        return _fail(str(exc))

    outputs = {"success": "true"}
    if outcome.message_id:
        outputs["message_id"] = outcome.message_id
    write_outputs(outputs)
    if outcome.degraded:
        logger.info("action finished with warnings", action=action, warnings=len(outcome.warnings))
    return 0


if __name__ == MAIN_MODULE:
    raise SystemExit(main())
