"""Classification providers."""

from .base import MediaClassifier
from .llm import ClassifierError, LLMClassifier
from .usage import UsageStats

__all__ = ["ClassifierError", "LLMClassifier", "MediaClassifier", "UsageStats"]
