"""Termination detection for the agent loop."""

from termagent.termination.detector import check, classify_text
from termagent.termination.rules import (
    DEFAULT_TEXT_RULES,
    INCOMPLETE_INTENT,
    MENTIONS_TOOL,
    SUMMARIZING,
    PatternClassifier,
    TextRule,
)

__all__ = [
    "DEFAULT_TEXT_RULES",
    "INCOMPLETE_INTENT",
    "MENTIONS_TOOL",
    "SUMMARIZING",
    "PatternClassifier",
    "TextRule",
    "check",
    "classify_text",
]
