"""
Canonical title consolidation.

Raw titles come straight from per-file classification and may spell the same
series several ways ("瑞克和莫蒂", "Rick and Morty", "Rick.and.Morty"). This
module asks the classifier for a raw -> canonical mapping, merges the raw
records that share a canonical title and elects a release year per record.
"""

from __future__ import annotations

import logging
from typing import Dict

from .models import Blueprint, SeriesRecord
from .providers.base import MediaClassifier

logger = logging.getLogger(__name__)


class ConsolidationEngine:
    def __init__(self, classifier: MediaClassifier) -> None:
        self.classifier = classifier

    async def consolidate(self, raw: Blueprint) -> Blueprint:
        """
        Build a new Blueprint keyed by canonical title.

        The raw blueprint is never modified. When the classifier cannot
        provide a mapping every raw title maps to itself, so the run still
        links everything under the titles it was classified with.
        """
        titles = raw.titles()
        if not titles:
            return Blueprint()

        mapping = await self.classifier.canonicalize_titles(titles)
        if mapping is None:
            logger.error("No canonical title mapping available; keeping raw titles")
            mapping = {}
        return merge_records(raw, self._complete_mapping(titles, mapping))

    @staticmethod
    def _complete_mapping(titles: list[str], mapping: Dict[str, str]) -> Dict[str, str]:
        complete: Dict[str, str] = {}
        for raw_title, canonical in mapping.items():
            if isinstance(canonical, str) and canonical.strip():
                complete[raw_title] = canonical.strip()
        for title in titles:
            if title not in complete:
                complete[title] = title
        return complete


def merge_records(raw: Blueprint, mapping: Dict[str, str]) -> Blueprint:
    """
    Merge raw records into canonical ones following ``mapping`` order.

    Mapping entries whose raw title has no record are ignored. A record whose
    type disagrees with the canonical record it maps onto stays under its raw
    title instead, or is dropped when that title is already in use.
    """
    merged = Blueprint()
    for raw_title, canonical_title in mapping.items():
        source = raw.get(raw_title)
        if source is None:
            logger.debug("Canonical mapping references unknown title %r", raw_title)
            continue
        key = canonical_title
        target = merged.get(key)
        if target is not None and target.type != source.type:
            logger.warning(
                "%r (%s) maps to %r which is a %s; keeping it separate",
                raw_title,
                source.type,
                canonical_title,
                target.type,
            )
            key = raw_title
            target = merged.get(key)
            if target is not None and target.type != source.type:
                logger.warning("Dropping %d item(s) of %r", len(source.items), raw_title)
                continue
        if target is None:
            target = merged.setdefault(key, SeriesRecord(type=source.type))
        target.absorb(source)

    for title, record in merged.items():
        record.canonical_title = title
        record.canonical_year = record.elect_year()
    return merged
