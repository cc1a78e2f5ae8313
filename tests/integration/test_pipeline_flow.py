"""End-to-end pipeline flow: file store + Discord client against an in-process fake Discord."""

from __future__ import annotations

import functools
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from pipeline_tracker.core.errors import InvalidStatusError, InvalidStepNumberError
from pipeline_tracker.core.models import StepStatus
from pipeline_tracker.core.tracker import PipelineTracker
from pipeline_tracker.entrypoints import action
from pipeline_tracker.notifier import DiscordNotifier
from pipeline_tracker.storage import FileStateStore

CHANNEL = "1234567890"


class FakeDiscord:
    """Minimal channel-message API: create, edit, delete, with optional injected failures."""

    def __init__(self) -> None:
        self.messages: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: list[httpx.Response] = []
        self._next_id = 1000

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path))
        if self.failures:
            return self.failures.pop(0)

        message_id = request.url.path.rsplit("/", 1)[-1]
        if request.method == "POST":
            self._next_id += 1
            new_id = str(self._next_id)
            self.messages[new_id] = json.loads(request.content)
            return httpx.Response(200, json={"id": new_id})
        if request.method == "PATCH":
            if message_id not in self.messages:
                return httpx.Response(404, json={"message": "Unknown Message", "code": 10008})
            self.messages[message_id] = json.loads(request.content)
            return httpx.Response(200, json={"id": message_id})
        if request.method == "DELETE":
            self.messages.pop(message_id, None)
            return httpx.Response(204)
        return httpx.Response(200, json={"id": CHANNEL})

    def embed(self, message_id: str) -> dict:
        return self.messages[message_id]["embeds"][0]


@pytest.fixture
def discord() -> FakeDiscord:
    return FakeDiscord()


@pytest.fixture
def notifier_factory(discord):
    return functools.partial(DiscordNotifier, transport=httpx.MockTransport(discord), sleep=AsyncMock())


def _new_process(tmp_path, notifier_factory, clock) -> PipelineTracker:
    """A tracker as a fresh CI step would build it: nothing shared but the directory."""
    return PipelineTracker(notifier_factory("test-token", CHANNEL), FileStateStore(tmp_path), clock=clock)


@pytest.mark.asyncio
async def test_full_pipeline_across_processes(tmp_path, notifier_factory, discord, clock):
    outcome = await _new_process(tmp_path, notifier_factory, clock).init_pipeline("42", "Add X", "alice", "o/r", "main")
    store = FileStateStore(tmp_path)
    state = store.load()
    assert store.file_path.exists()
    assert state.steps == []
    assert state.pr_info.number == 42
    message_id = outcome.message_id
    assert discord.embed(message_id)["title"] == "🚀 Pipeline Started - PR #42"

    clock.advance(seconds=30)
    await _new_process(tmp_path, notifier_factory, clock).update_step(1, 2, "Build", "success", [("dur", "5s")])
    state = store.load()
    assert len(state.steps) == 1
    assert state.steps[0].status is StepStatus.SUCCESS
    assert state.steps[0].completed_at == clock.now
    assert discord.embed(message_id)["fields"][0]["value"] == "1/1 steps completed (100%)"

    clock.advance(seconds=30)
    await _new_process(tmp_path, notifier_factory, clock).update_step(2, 2, "Deploy", "running")
    assert [s.number for s in store.load().steps] == [1, 2]
    assert discord.embed(message_id)["fields"][0]["value"] == "1/2 steps completed (50%)"

    clock.advance(seconds=65)
    outcome = await _new_process(tmp_path, notifier_factory, clock).complete_pipeline()
    assert outcome.remote_synced
    assert not store.file_path.exists()
    assert not store.backup_path.exists()
    assert store.load() is None
    final = discord.embed(message_id)
    assert final["title"] == "🎉 Pipeline Completed - PR #42"
    assert final["fields"][1]["value"] == "2m 5s"


@pytest.mark.asyncio
async def test_rate_limited_update_is_retried(tmp_path, notifier_factory, discord, clock):
    await _new_process(tmp_path, notifier_factory, clock).init_pipeline(7, "Fix", "bob", "o/r", "dev")
    discord.failures.append(httpx.Response(429, json={"message": "rate limited", "retry_after": 0.1}))

    outcome = await _new_process(tmp_path, notifier_factory, clock).update_step(1, 1, "Build", "running")

    assert outcome.remote_synced
    assert [method for method, _ in discord.calls] == ["POST", "PATCH", "PATCH"]


@pytest.mark.asyncio
async def test_deleted_message_degrades_but_keeps_state(tmp_path, notifier_factory, discord, clock):
    outcome = await _new_process(tmp_path, notifier_factory, clock).init_pipeline(7, "Fix", "bob", "o/r", "dev")
    discord.messages.pop(outcome.message_id)

    outcome = await _new_process(tmp_path, notifier_factory, clock).update_step(1, 2, "Build", "failed")

    assert outcome.state_saved
    assert not outcome.remote_synced
    assert any("404" in w for w in outcome.warnings)
    assert FileStateStore(tmp_path).load().steps[0].status is StepStatus.FAILED


@pytest.mark.asyncio
async def test_corrupt_state_recovers_from_backup(tmp_path, notifier_factory, clock):
    await _new_process(tmp_path, notifier_factory, clock).init_pipeline(7, "Fix", "bob", "o/r", "dev")
    await _new_process(tmp_path, notifier_factory, clock).update_step(1, 3, "Build", "success")

    store = FileStateStore(tmp_path)
    data = json.loads(store.file_path.read_text(encoding="utf-8"))
    data["metadata"]["checksum"] = "f" * 64
    store.file_path.write_text(json.dumps(data), encoding="utf-8")

    # The backup holds the record from before step 1; the next step merges into it.
    await _new_process(tmp_path, notifier_factory, clock).update_step(2, 3, "Test", "running")
    assert [s.number for s in store.load().steps] == [2]


@pytest.mark.asyncio
async def test_garbled_discord_response_does_not_block_init(tmp_path, clock):
    def garbled(request: httpx.Request) -> httpx.Response:
        raise httpx.DecodingError("bad gzip", request=request)

    notifier = DiscordNotifier("test-token", CHANNEL, transport=httpx.MockTransport(garbled), sleep=AsyncMock())
    tracker = PipelineTracker(notifier, FileStateStore(tmp_path), clock=clock)

    outcome = await tracker.init_pipeline("42", "Add X", "alice", "o/r", "main")

    assert outcome.state_saved
    assert not outcome.remote_synced
    assert FileStateStore(tmp_path).load().message_id == ""


@pytest.mark.asyncio
async def test_undecodable_state_file_degrades_step(tmp_path, notifier_factory, discord, clock):
    FileStateStore(tmp_path).file_path.write_bytes(b"\xff\xfe{garbage")

    outcome = await _new_process(tmp_path, notifier_factory, clock).update_step(1, 1, "Build", "success")

    assert not outcome.state_saved
    assert not outcome.remote_synced
    assert outcome.warnings == ["No pipeline state found (was init run?); skipping step update"]
    assert discord.calls == []


@pytest.mark.asyncio
async def test_invalid_inputs_touch_nothing(tmp_path, notifier_factory, discord, clock):
    tracker = _new_process(tmp_path, notifier_factory, clock)

    with pytest.raises(InvalidStepNumberError):
        await tracker.update_step(0, 3, "X", "success")
    with pytest.raises(InvalidStatusError):
        await tracker.update_step(1, 3, "X", "bogus-status")

    assert discord.calls == []
    assert not FileStateStore(tmp_path).file_path.exists()


def test_cli_run_writes_state_and_outputs(tmp_path, monkeypatch, discord):
    monkeypatch.chdir(tmp_path)
    output = tmp_path / "out"
    monkeypatch.setenv("GITHUB_OUTPUT", str(output))
    monkeypatch.setattr(
        action,
        "DiscordNotifier",
        functools.partial(DiscordNotifier, transport=httpx.MockTransport(discord), sleep=AsyncMock()),
    )
    creds = ["--discord-bot-token", "test-token", "--discord-channel-id", CHANNEL]

    init_args = ["--pr-number", "42", "--pr-title", "Add X", "--author", "alice", "--repository", "o/r", "--branch", "main"]
    assert action.main(["init", *init_args, *creds]) == 0
    assert (tmp_path / ".discord-pipeline-state").exists()

    step_args = ["--step-number", "1", "--total-steps", "1", "--step-name", "Build", "--status", "passed"]
    assert action.main(["step", *step_args, *creds]) == 0
    assert action.main(["complete", *creds]) == 0

    assert not (tmp_path / ".discord-pipeline-state").exists()
    assert output.read_text(encoding="utf-8").splitlines() == [
        "success=true",
        "message_id=1001",
        "success=true",
        "message_id=1001",
        "success=true",
        "message_id=1001",
    ]
    assert [method for method, _ in discord.calls] == ["POST", "PATCH", "PATCH"]
