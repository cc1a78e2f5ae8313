"""Unit tests for action input validation and state record validation."""

import pytest

from pipeline_tracker.core.errors import (
    InvalidCredentialError,
    InvalidInputError,
    InvalidStepNumberError,
    MissingInputError,
)
from pipeline_tracker.core.validation import (
    normalize_channel_id,
    parse_additional_info,
    parse_pr_number,
    parse_step_count,
    validate_bot_token,
    validate_state_record,
    validate_step_number,
)


def _valid_record():
    return {
        "messageId": "",
        "prNumber": 42,
        "prTitle": "Add X",
        "author": "alice",
        "repository": "o/r",
        "branch": "main",
        "steps": [{"number": 1, "name": "Build", "status": "success", "additionalInfo": [["dur", "5s"]]}],
        "pipelineStartedAt": "2026-03-01T12:00:00.000Z",
    }


class TestCredentials:
    def test_token_prefix_is_stripped(self):
        assert validate_bot_token("Bot abc.def") == "abc.def"

    def test_blank_token_is_missing(self):
        with pytest.raises(MissingInputError, match="discord_bot_token"):
            validate_bot_token("   ")

    def test_token_with_whitespace_rejected(self):
        with pytest.raises(InvalidCredentialError) as exc_info:
            validate_bot_token("abc def")
        assert exc_info.value.code == "INVALID_BOT_TOKEN"
        assert exc_info.value.field == "discord_bot_token"

    def test_channel_id_digits(self):
        assert normalize_channel_id(" 1234567890 ") == "1234567890"

    def test_channel_id_scientific_notation(self):
        assert normalize_channel_id("1.39589530256487E+18") == "1395895302564870000"

    def test_channel_id_non_numeric_rejected(self):
        with pytest.raises(InvalidCredentialError) as exc_info:
            normalize_channel_id("general")
        assert exc_info.value.code == "INVALID_CHANNEL_ID"

    def test_channel_id_blank_is_missing(self):
        with pytest.raises(MissingInputError):
            normalize_channel_id(None)


class TestNumbers:
    def test_pr_number_accepts_hash_prefix(self):
        assert parse_pr_number("#42") == 42
        assert parse_pr_number(7) == 7

    def test_pr_number_rejects_text(self):
        with pytest.raises(InvalidInputError, match="Invalid pull request number"):
            parse_pr_number("forty-two")

    def test_step_count_parses(self):
        assert parse_step_count(" 3 ", "step_number") == 3

    def test_non_integer_step_number(self):
        with pytest.raises(InvalidStepNumberError):
            parse_step_count("two", "step_number")

    def test_non_integer_total_steps(self):
        with pytest.raises(InvalidInputError) as exc_info:
            parse_step_count("lots", "total_steps")
        assert exc_info.value.code == "INVALID_TOTAL_STEPS"

    @pytest.mark.parametrize(("step", "total"), [(0, 3), (4, 3), (1, 0), (-1, 5)])
    def test_step_number_out_of_range(self, step, total):
        with pytest.raises(InvalidStepNumberError):
            validate_step_number(step, total)

    def test_step_number_in_range(self):
        validate_step_number(3, 3)


class TestAdditionalInfo:
    def test_object_values_are_stringified_in_order(self):
        assert parse_additional_info('{"duration": "5s", "tests": 12, "ok": true}') == [
            ("duration", "5s"),
            ("tests", "12"),
            ("ok", "true"),
        ]

    def test_pair_list(self):
        assert parse_additional_info('[["a", "1"], ["b", 2]]') == [("a", "1"), ("b", "2")]

    @pytest.mark.parametrize("raw", [None, "", "   ", "{not json", '"text"', "[1, 2, 3]"])
    def test_unusable_input_yields_no_pairs(self, raw):
        assert parse_additional_info(raw) == []


class TestStateRecord:
    def test_valid_record(self):
        assert validate_state_record(_valid_record()) == []

    def test_collects_every_violation(self):
        record = _valid_record()
        record["prNumber"] = -1
        record["author"] = "   "
        record["pipelineStartedAt"] = "yesterday"
        record["steps"] = [
            {"number": 0, "name": "", "status": "done", "additionalInfo": [["only-key"]]},
        ]
        diagnostics = validate_state_record(record)
        assert "prNumber must be >= 0" in diagnostics
        assert "author must be a non-empty string" in diagnostics
        assert "pipelineStartedAt must be a timestamp" in diagnostics
        assert any(d.startswith("steps[0].number") for d in diagnostics)
        assert any(d.startswith("steps[0].name") for d in diagnostics)
        assert any(d.startswith("steps[0].status") for d in diagnostics)
        assert any(d.startswith("steps[0].additionalInfo") for d in diagnostics)

    def test_duplicate_step_numbers(self):
        record = _valid_record()
        record["steps"].append({"number": 1, "name": "Again", "status": "running", "additionalInfo": []})
        assert validate_state_record(record) == ["steps[1].number 1 is duplicated"]

    def test_bool_pr_number_rejected(self):
        record = _valid_record()
        record["prNumber"] = True
        assert validate_state_record(record) == ["prNumber must be an integer"]

    def test_non_object(self):
        assert validate_state_record(["nope"]) == ["state must be an object"]
