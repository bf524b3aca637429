"""Parsing of chat-completion responses into analysis payloads."""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from report_insights.domain.entities import TokenUsage
from report_insights.domain.exceptions import ResponseParseError

logger = logging.getLogger(__name__)

ANALYSIS_FIELDS = ("summary", "trends", "insights", "recommendations")

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


@dataclass
class AnalysisValidation:
    is_valid: bool
    missing_fields: list[str] = field(default_factory=list)


def extract_message_content(body: Any) -> str:
    """Return ``choices[0].message.content`` from a buffered response body."""
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ResponseParseError("Response has no choices[0].message.content") from e
    if content is None:
        raise ResponseParseError("Response message content is empty")
    if not isinstance(content, str):
        return json.dumps(content, ensure_ascii=False)
    return content


def extract_token_usage(body: Any) -> TokenUsage:
    if not isinstance(body, dict):
        return TokenUsage()
    return TokenUsage.from_mapping(body.get("usage"))


def parse_analysis_content(content: str) -> Any:
    """Turn model output into the analysis payload.

    Models are asked for JSON but often wrap it in prose or code fences, so
    the outermost ``{...}`` block is tried next. Text that contains no JSON
    at all is returned unchanged.
    """
    text = content.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    match = _JSON_BLOCK.search(text)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.debug("Embedded JSON block could not be parsed; keeping text")

    return content


def validate_analysis_data(data: Any) -> AnalysisValidation:
    """Check a parsed payload for the fields the dashboard renders."""
    if not isinstance(data, dict):
        return AnalysisValidation(is_valid=False, missing_fields=list(ANALYSIS_FIELDS))
    missing = [name for name in ANALYSIS_FIELDS if not data.get(name)]
    return AnalysisValidation(is_valid=not missing, missing_fields=missing)


def split_into_chunks(text: str, chunk_size: int = 15) -> list[str]:
    """Split text into fixed-size pieces to replay a cached answer as a stream."""
    if not text:
        return []
    return [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]
