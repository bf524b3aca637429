"""Domain entities for chat completion traffic — framework-independent."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ChatMessage:
    """A single message in the outbound conversation."""

    role: str  # "system" | "user" | "assistant"
    content: str = ""

    def to_payload(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class TokenUsage:
    """Token usage statistics from a completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> "TokenUsage":
        """Build from an OpenAI-style ``usage`` object, tolerating gaps."""
        if not data:
            return cls()
        prompt = int(data.get("prompt_tokens") or 0)
        completion = int(data.get("completion_tokens") or 0)
        total = int(data.get("total_tokens") or prompt + completion)
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


@dataclass
class CompletionOutcome:
    """What one successful attempt produced, before content parsing."""

    content: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    streamed: bool = False
