"""Discord message content for each pipeline phase.

Pure functions: the caller supplies `now`, nothing here touches the clock,
the network or the state file. Every text is clipped to Discord's embed
limits so an oversized PR title or step note cannot get the request rejected.
"""

from __future__ import annotations

from datetime import datetime

from typing_extensions import TypedDict

from pipeline_tracker.constants import (
    EMBED_DESCRIPTION_MAX,
    EMBED_FIELD_NAME_MAX,
    EMBED_FIELD_VALUE_MAX,
    EMBED_FIELDS_MAX,
    EMBED_FOOTER_MAX,
    EMBED_TITLE_MAX,
)
from pipeline_tracker.core.models import PipelineState, PrInfo, StepRecord, StepStatus, compute_progress
from pipeline_tracker.utils import truncate
from pipeline_tracker.utils.dates import ensure_utc, format_duration, format_iso_datetime

COLOR_RUNNING = StepStatus.RUNNING.color
COLOR_SUCCESS = StepStatus.SUCCESS.color
COLOR_FAILED = StepStatus.FAILED.color
COLOR_WARNING = StepStatus.SKIPPED.color


class EmbedField(TypedDict):
    name: str
    value: str
    inline: bool


class EmbedFooter(TypedDict):
    text: str


class Embed(TypedDict):
    title: str
    description: str
    color: int
    fields: list[EmbedField]
    footer: EmbedFooter
    timestamp: str


class DiscordMessage(TypedDict):
    """Request body for creating or editing a channel message."""

    content: str
    embeds: list[Embed]


def build_init_message(pr_info: PrInfo, now: datetime) -> DiscordMessage:
    fields = [
        _field("👤 Author", pr_info.author, inline=True),
        _field("📦 Repository", pr_info.repository, inline=True),
        _field("🌿 Branch", pr_info.branch, inline=True),
        _field("📊 Status", "⏳ Initializing pipeline...", inline=False),
    ]
    return _message(
        title=f"🚀 Pipeline Started - PR #{pr_info.number}",
        pr_title=pr_info.title,
        color=COLOR_RUNNING,
        fields=fields,
        footer=f"Pipeline started at {_display_time(now)}",
        now=now,
    )


def build_step_update_message(state: PipelineState, current_step: int, now: datetime) -> DiscordMessage:
    """Progress summary plus one field per recorded step, in discovery order."""
    progress = compute_progress(state.steps)
    current = state.find_step(current_step)

    overall, color = "🔄 Running", COLOR_RUNNING
    if progress.is_finished:
        if state.has_failures:
            overall, color = "❌ Failed", COLOR_FAILED
        else:
            overall, color = "✅ Completed", COLOR_SUCCESS

    fields = [
        _field(
            "📊 Progress",
            f"{progress.completed}/{progress.total} steps completed ({progress.percentage}%)",
            inline=True,
        ),
        _field("🎯 Current Step", current.name if current else f"Step {current_step}", inline=True),
        _field("📋 Status", overall, inline=True),
    ]
    if state.steps:
        fields.append(_field("📝 Steps", "See fields below", inline=False))
        fields.extend(_step_field(step) for step in state.steps)

    return _message(
        title=f"🔄 Pipeline Update - PR #{state.pr_info.number}",
        pr_title=state.pr_info.title,
        color=color,
        fields=fields,
        footer=f"Last updated at {_display_time(now)}",
        now=now,
    )


def build_completion_message(state: PipelineState, now: datetime) -> DiscordMessage:
    progress = compute_progress(state.steps)
    duration = format_duration(ensure_utc(now) - ensure_utc(state.started_at))

    if state.has_failures:
        status, color, emoji = "Failed", COLOR_FAILED, "💥"
        final_status = "❌ Failed"
    elif state.has_skipped:
        status, color, emoji = "Completed", COLOR_WARNING, "⚠️"
        final_status = "⚠️ Completed with skipped steps"
    else:
        status, color, emoji = "Completed", COLOR_SUCCESS, "🎉"
        final_status = "✅ Success"

    fields = [
        _field("📊 Final Status", f"{emoji} {final_status}", inline=True),
        _field("⏱️ Duration", duration, inline=True),
        _field("📈 Completion", f"{progress.completed}/{progress.total} steps ({progress.percentage}%)", inline=True),
    ]
    if state.steps:
        summary = "\n".join(f"{step.status.emoji} {step.name}" for step in state.steps)
        fields.append(_field("📝 Steps Summary", summary, inline=False))

    return _message(
        title=f"{emoji} Pipeline {status} - PR #{state.pr_info.number}",
        pr_title=state.pr_info.title,
        color=color,
        fields=fields,
        footer=f"Pipeline completed at {_display_time(now)}",
        now=now,
    )


def _step_field(step: StepRecord) -> EmbedField:
    value = f"{step.status.emoji} **{step.name}** - {step.status.label}"
    if step.additional_info:
        info = ", ".join(f"**{key}:** {val}" for key, val in step.additional_info)
        value += f"\n└ {info}"
    return _field(f"Step {step.number}", value, inline=False)


def _field(name: str, value: str, *, inline: bool) -> EmbedField:
    return {
        "name": truncate(name, EMBED_FIELD_NAME_MAX),
        "value": truncate(value, EMBED_FIELD_VALUE_MAX),
        "inline": inline,
    }


def _message(
    *,
    title: str,
    pr_title: str,
    color: int,
    fields: list[EmbedField],
    footer: str,
    now: datetime,
) -> DiscordMessage:
    embed: Embed = {
        "title": truncate(title, EMBED_TITLE_MAX),
        "description": truncate(f"**{pr_title}**", EMBED_DESCRIPTION_MAX),
        "color": color,
        "fields": fields[:EMBED_FIELDS_MAX],
        "footer": {"text": truncate(footer, EMBED_FOOTER_MAX)},
        "timestamp": format_iso_datetime(now),
    }
    return {"content": "", "embeds": [embed]}


def _display_time(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y-%m-%d %H:%M:%S UTC")
