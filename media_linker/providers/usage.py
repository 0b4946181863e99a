from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass
class UsageStats:
    """Running totals of classifier requests and the tokens they consumed."""

    requests: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    failures: int = 0
    cache_hits: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def add_request(self, usage: Optional[Mapping[str, Any]]) -> None:
        usage = usage or {}
        prompt = _as_int(usage.get("prompt_tokens"))
        completion = _as_int(usage.get("completion_tokens"))
        total = _as_int(usage.get("total_tokens")) or prompt + completion
        with self._lock:
            self.requests += 1
            self.prompt_tokens += prompt
            self.completion_tokens += completion
            self.total_tokens += total

    def add_failure(self) -> None:
        with self._lock:
            self.failures += 1

    def add_cache_hit(self) -> None:
        with self._lock:
            self.cache_hits += 1

    def report_lines(self) -> list[str]:
        return [
            f"Classifier requests: {self.requests} ({self.failures} failed, {self.cache_hits} cache hits)",
            f"Tokens used: {self.total_tokens:,}",
            f"  prompt: {self.prompt_tokens:,}",
            f"  completion: {self.completion_tokens:,}",
        ]

    def log_report(self) -> None:
        for line in self.report_lines():
            logger.info(line)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
