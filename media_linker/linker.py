from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AbstractSet, Optional

from .config import LinkSettings
from .fs_utils import LinkOutcome, create_link, ensure_directory, sanitize_name
from .models import Blueprint, EpisodeOrMovie, MediaFile, SeriesRecord, existing_link_id

logger = logging.getLogger(__name__)

# Sidecars with these extensions are linked under the exact episode name so
# players pick them up automatically, whatever role they were given.
SAME_NAME_EXTENSIONS = {".nfo", ".ass", ".ssa", ".srt", ".sub", ".sup", ".vtt", ".lrc"}


@dataclass
class SyncReport:
    created: int = 0
    existing: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: LinkOutcome) -> None:
        if outcome is LinkOutcome.CREATED:
            self.created += 1
        elif outcome is LinkOutcome.EXISTS:
            self.existing += 1
        else:
            self.failed += 1

    def summary(self) -> str:
        return (
            f"{self.created} created, {self.existing} already present, "
            f"{self.skipped} skipped, {self.failed} failed"
        )


def series_directory_name(record: SeriesRecord, clean_title: str) -> str:
    if record.type == "movie" and record.canonical_year:
        return f"{clean_title} ({record.canonical_year})"
    return clean_title


def episode_base_name(clean_title: str, season: int, episode: int) -> str:
    return f"{clean_title} S{season:02d}E{episode:02d}"


def season_directory_name(season: int) -> str:
    return f"Season {season:02d}"


def sidecar_name(base: str, sidecar: MediaFile) -> str:
    ext = sidecar.extension.lower()
    if ext in SAME_NAME_EXTENSIONS:
        return f"{base}{ext}"
    suffix = f"-{sidecar.role}" if sidecar.role else ""
    return f"{base}{suffix}{ext}"


class LinkSynchronizer:
    """Materializes a consolidated Blueprint as a tree of links under the target root."""

    def __init__(self, settings: LinkSettings) -> None:
        if settings.target_root is None:
            raise ValueError("target_root is required to create links")
        self.target_root = settings.target_root
        self.link_type = settings.link_type
        self.path_mode = settings.path_mode

    def sync(self, blueprint: Blueprint, existing: AbstractSet[str] = frozenset()) -> SyncReport:
        report = SyncReport()
        for record in blueprint.records():
            self._sync_record(record, existing, report)
        logger.info("Link sync finished: %s", report.summary())
        return report

    def _sync_record(self, record: SeriesRecord, existing: AbstractSet[str], report: SyncReport) -> None:
        if not record.canonical_title:
            report.skipped += len(record.items)
            return
        clean_title = sanitize_name(record.canonical_title)
        if not clean_title:
            logger.warning("Title %r is empty once sanitized; skipping", record.canonical_title)
            report.skipped += len(record.items)
            return
        series_path = self.target_root / series_directory_name(record, clean_title)
        if not ensure_directory(series_path):
            report.skipped += len(record.items)
            return
        before = report.created
        for item in record.items:
            placement = self._placement(record, item, clean_title, series_path, existing)
            if placement is None:
                report.skipped += 1
                continue
            directory, base = placement
            if not ensure_directory(directory):
                report.skipped += 1
                continue
            self._link_item(item, directory, base, report)
        if report.created > before:
            logger.info("Linked %r (%d new link(s))", record.canonical_title, report.created - before)

    def _placement(
        self,
        record: SeriesRecord,
        item: EpisodeOrMovie,
        clean_title: str,
        series_path: Path,
        existing: AbstractSet[str],
    ) -> Optional[tuple[Path, str]]:
        if record.type == "movie":
            return series_path, series_path.name
        if item.season is None or item.episode is None:
            logger.debug("No season/episode for %s; skipping", item.primary_file.source_path)
            return None
        if existing_link_id(clean_title, item.season, item.episode) in existing:
            logger.debug("Already linked: %s", item.primary_file.source_path)
            return None
        directory = series_path / season_directory_name(item.season)
        return directory, episode_base_name(clean_title, item.season, item.episode)

    def _link_item(self, item: EpisodeOrMovie, directory: Path, base: str, report: SyncReport) -> None:
        primary = item.primary_file
        report.record(self._link(primary.source_path, directory / f"{base}{primary.extension}"))
        for sidecar in item.sidecar_files:
            report.record(self._link(sidecar.source_path, directory / sidecar_name(base, sidecar)))

    def _link(self, source: Path, destination: Path) -> LinkOutcome:
        return create_link(source, destination, self.link_type, self.path_mode)
