from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import Settings
from .consolidation import ConsolidationEngine
from .linker import LinkSynchronizer, SyncReport
from .models import Blueprint
from .plan import write_plan
from .providers.base import MediaClassifier
from .scanner import ScanEngine, ScanStats
from .state_probe import probe_existing_links

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    raw_titles: int = 0
    titles: int = 0
    items: int = 0
    scan: ScanStats = field(default_factory=ScanStats)
    sync: Optional[SyncReport] = None
    plan_path: Optional[Path] = None
    blueprint: Blueprint = field(default_factory=Blueprint, repr=False)


class LibraryOrganizer:
    """Runs one pass: scan every source root, consolidate titles, then plan or link."""

    def __init__(
        self,
        settings: Settings,
        classifier: MediaClassifier,
        scanner: ScanEngine | None = None,
        consolidator: ConsolidationEngine | None = None,
        synchronizer: LinkSynchronizer | None = None,
    ) -> None:
        self.settings = settings
        self.classifier = classifier
        self.scanner = scanner or ScanEngine(
            classifier,
            settings.library.video_extensions,
            concurrency=settings.scan.concurrency,
            exclude_patterns=settings.library.exclude_patterns,
        )
        self.consolidator = consolidator or ConsolidationEngine(classifier)
        self._synchronizer = synchronizer

    @property
    def synchronizer(self) -> LinkSynchronizer:
        if self._synchronizer is None:
            self._synchronizer = LinkSynchronizer(self.settings.links)
        return self._synchronizer

    async def run(self) -> RunSummary:
        logger.info("Phase 1: scanning and classifying files")
        raw = Blueprint()
        for root in self.settings.library.roots:
            await self.scanner.scan(root, raw)
        logger.info(
            "Phase 1 complete: %d item(s) under %d raw title(s)", raw.item_count(), len(raw)
        )

        logger.info("Phase 2: consolidating titles")
        final = await self.consolidator.consolidate(raw)
        logger.info("Phase 2 complete: %d title(s)", len(final))
        summary = RunSummary(
            raw_titles=len(raw),
            titles=len(final),
            items=final.item_count(),
            scan=self.scanner.stats,
            blueprint=final,
        )

        loop = asyncio.get_running_loop()
        if self.settings.debug.enabled:
            plan_path = self.settings.debug.plan_path
            logger.info("Debug mode: writing plan to %s instead of creating links", plan_path)
            try:
                summary.plan_path = await loop.run_in_executor(None, write_plan, final, plan_path)
            except OSError as exc:
                logger.error("Cannot write plan to %s: %s", plan_path, exc)
            return summary

        logger.info("Phase 3: creating links")
        links = self.settings.links
        existing = await loop.run_in_executor(
            None, probe_existing_links, self.synchronizer.target_root, links.link_type
        )
        summary.sync = await loop.run_in_executor(None, self.synchronizer.sync, final, existing)
        logger.info("Phase 3 complete")
        return summary
