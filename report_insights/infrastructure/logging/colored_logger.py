"""Colored stage logger — ANSI-colored console lines for the analysis lifecycle.

Provides a StageLogger with color-coded output per orchestration stage,
making it easy to follow one analysis through cache, retries and
fallbacks in the terminal.

Color scheme:
    🔵 Blue    — Request start
    🟢 Green   — Cache / Completion
    🟡 Yellow  — Retry
    🟣 Magenta — Model fallback
    🟠 Cyan    — Streaming
    🔴 Red     — Errors
    ⚪ Gray    — Details
"""

import logging
from typing import Any


# ── ANSI Color Codes ─────────────────────────────────────────────────

class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


# ── Stage Definitions ────────────────────────────────────────────────

class Stage:
    """Predefined orchestration stages with colors and icons."""

    REQUEST = ("REQUEST", _Colors.BLUE, "🤖")
    CACHE = ("CACHE", _Colors.GREEN, "💾")
    RETRY = ("RETRY", _Colors.YELLOW, "🔁")
    FALLBACK = ("FALLBACK", _Colors.MAGENTA, "🔀")
    STREAM = ("STREAM", _Colors.CYAN, "📡")
    ERROR = ("ERROR", _Colors.RED, "❌")
    COMPLETE = ("COMPLETE", _Colors.GREEN, "✅")


# ── StageLogger ──────────────────────────────────────────────────────

class StageLogger:
    """Color-coded logger for the analysis engine.

    Usage:
        log = StageLogger("AnalysisEngine")
        log.step_start(Stage.REQUEST, "Analysis started", model="qwen")
        log.detail("Cache miss")
        log.step_complete(Stage.COMPLETE, "Analysis finished", ms=812)
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)

    @staticmethod
    def _details(kwargs: dict[str, Any]) -> str:
        if not kwargs:
            return ""
        details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
        return f" {_Colors.GRAY}({details}){_Colors.RESET}"

    def step_start(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        label, color, icon = stage
        self._logger.info(
            f"{color}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{color}{message}{_Colors.RESET}{self._details(kwargs)}"
        )

    def step_complete(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        label, color, icon = stage
        self._logger.info(
            f"{color}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.GREEN}✓ {message}{_Colors.RESET}{self._details(kwargs)}"
        )

    def step_warning(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        label, color, icon = stage
        self._logger.warning(
            f"{color}{icon} [{label}]{_Colors.RESET} "
            f"{color}{message}{_Colors.RESET}{self._details(kwargs)}"
        )

    def step_error(self, stage: tuple[str, str, str], message: str, error: BaseException | None = None) -> None:
        label, _, icon = stage
        formatted = (
            f"{_Colors.RED}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.RED}{message}{_Colors.RESET}"
        )
        if error:
            formatted += f" {_Colors.DIM}→ {type(error).__name__}: {error}{_Colors.RESET}"
        self._logger.error(formatted)

    def detail(self, message: str, **kwargs: Any) -> None:
        formatted = f"   {_Colors.GRAY}├─ {message}{_Colors.RESET}"
        if kwargs:
            details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
            formatted += f" {_Colors.DIM}({details}){_Colors.RESET}"
        self._logger.info(formatted)

