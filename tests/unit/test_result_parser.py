"""Unit tests for chat-completion response parsing."""

import pytest

from report_insights.application.services.result_parser import (
    extract_message_content,
    extract_token_usage,
    parse_analysis_content,
    split_into_chunks,
    validate_analysis_data,
)
from report_insights.domain.exceptions import ResponseParseError


def test_extract_message_content():
    body = {"choices": [{"message": {"role": "assistant", "content": "hello"}}]}
    assert extract_message_content(body) == "hello"


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"choices": []},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": None}}]},
        "not a dict",
    ],
)
def test_extract_message_content_rejects_malformed_bodies(body):
    with pytest.raises(ResponseParseError):
        extract_message_content(body)


def test_extract_token_usage_defaults_total():
    usage = extract_token_usage({"usage": {"prompt_tokens": 7, "completion_tokens": 3}})

    assert usage.prompt_tokens == 7
    assert usage.completion_tokens == 3
    assert usage.total_tokens == 10


def test_extract_token_usage_without_usage_block():
    assert extract_token_usage({}).total_tokens == 0


def test_parse_analysis_content_variants():
    assert parse_analysis_content('{"summary": "s"}') == {"summary": "s"}
    assert parse_analysis_content('Result:\n{"summary": "s"}\nThanks') == {"summary": "s"}
    assert parse_analysis_content("No JSON here") == "No JSON here"
    assert parse_analysis_content("{broken json") == "{broken json"


def test_validate_analysis_data():
    full = {"summary": "s", "trends": ["t"], "insights": ["i"], "recommendations": ["r"]}
    assert validate_analysis_data(full).is_valid

    partial = validate_analysis_data({"summary": "s", "trends": []})
    assert not partial.is_valid
    assert partial.missing_fields == ["trends", "insights", "recommendations"]

    assert not validate_analysis_data("plain text").is_valid


def test_split_into_chunks():
    assert split_into_chunks("") == []
    assert split_into_chunks("abcdefgh", chunk_size=3) == ["abc", "def", "gh"]
    assert "".join(split_into_chunks("x" * 40)) == "x" * 40
