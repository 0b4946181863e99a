from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

from .cache import ClassificationCache
from .config import Settings
from .organizer import LibraryOrganizer
from .providers.base import MediaClassifier
from .providers.llm import LLMClassifier
from .providers.usage import UsageStats

logger = logging.getLogger(__name__)


@dataclass
class MediaLinkerApp:
    settings: Settings
    classifier: MediaClassifier
    stats: UsageStats
    cache: Optional[ClassificationCache] = None
    _organizer: Optional[LibraryOrganizer] = None

    @classmethod
    def create(cls, settings: Settings) -> "MediaLinkerApp":
        cache: Optional[ClassificationCache] = None
        if settings.cache.enabled:
            try:
                cache = ClassificationCache(settings.cache.path)
            except (OSError, sqlite3.Error) as exc:
                logger.warning("Classification cache unavailable (%s): %s", settings.cache.path, exc)
        stats = UsageStats()
        classifier = LLMClassifier(settings.classifier, cache=cache, stats=stats)
        return cls(settings=settings, classifier=classifier, stats=stats, cache=cache)

    def get_organizer(self) -> LibraryOrganizer:
        if self._organizer is None:
            self._organizer = LibraryOrganizer(self.settings, self.classifier)
        return self._organizer

    def close(self) -> None:
        if self.cache:
            self.cache.close()
