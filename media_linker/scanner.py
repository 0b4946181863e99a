from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from .grouping import build_primary_groups
from .models import Blueprint, EpisodeOrMovie, MediaFile, PrimaryGroup
from .providers.base import MediaClassifier

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 10


@dataclass
class DirectoryListing:
    directory: Path
    files: list[str] = field(default_factory=list)
    subdirectories: list[Path] = field(default_factory=list)


@dataclass
class ScanStats:
    directories: int = 0
    unreadable_directories: int = 0
    groups: int = 0
    classified: int = 0
    dropped: int = 0


def list_directory(directory: Path, exclude_patterns: Iterable[str] = ()) -> DirectoryListing:
    """Split one directory's entries into files and subdirectories, sorted by name.

    Raises OSError when the directory cannot be read.
    """
    patterns = list(exclude_patterns)
    listing = DirectoryListing(directory=directory)
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda entry: entry.name)
    for entry in entries:
        path = directory / entry.name
        if any(fnmatch.fnmatch(str(path), pattern) for pattern in patterns):
            continue
        try:
            if entry.is_dir(follow_symlinks=False):
                listing.subdirectories.append(path)
            elif entry.is_file():
                listing.files.append(entry.name)
        except OSError as exc:
            logger.debug("Skipping %s: %s", path, exc)
    return listing


def chunked(items: List[PrimaryGroup], size: int) -> Iterable[List[PrimaryGroup]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class ScanEngine:
    """Walks a source tree depth-first and folds classified file groups into a Blueprint."""

    def __init__(
        self,
        classifier: MediaClassifier,
        video_extensions: Iterable[str],
        concurrency: int = DEFAULT_CONCURRENCY,
        exclude_patterns: Iterable[str] = (),
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be a positive integer")
        self.classifier = classifier
        self.video_extensions = [ext.lower() for ext in video_extensions]
        self.concurrency = concurrency
        self.exclude_patterns = list(exclude_patterns)
        self.stats = ScanStats()

    async def scan(self, root: Path, blueprint: Blueprint) -> Blueprint:
        logger.info("Scanning %s", root)
        await self._scan_directory(root, blueprint)
        return blueprint

    async def _scan_directory(self, directory: Path, blueprint: Blueprint) -> None:
        loop = asyncio.get_running_loop()
        try:
            listing = await loop.run_in_executor(
                None, list_directory, directory, self.exclude_patterns
            )
        except OSError as exc:
            self.stats.unreadable_directories += 1
            logger.warning("Cannot read directory %s: %s", directory, exc)
            return
        self.stats.directories += 1

        groups = build_primary_groups(directory, listing.files, self.video_extensions)
        if groups:
            logger.info("Found %d video group(s) in %s", len(groups), directory)
            self.stats.groups += len(groups)
        done = 0
        for chunk in chunked(groups, self.concurrency):
            done += len(chunk)
            logger.debug("Classifying %d group(s) (%d/%d)", len(chunk), done, len(groups))
            results = await asyncio.gather(
                *(self._analyze_group(group) for group in chunk),
                return_exceptions=True,
            )
            self._fold(blueprint, chunk, results)

        for subdirectory in listing.subdirectories:
            await self._scan_directory(subdirectory, blueprint)

    def _fold(
        self,
        blueprint: Blueprint,
        chunk: List[PrimaryGroup],
        results: list[EpisodeOrMovie | BaseException | None],
    ) -> None:
        # Runs only after every task in the chunk has settled; sole writer of the blueprint.
        for group, result in zip(chunk, results):
            if isinstance(result, BaseException):
                self.stats.dropped += 1
                logger.error(
                    "Analysis of %s failed: %s", group.primary_file.source_path, result
                )
                continue
            if result is None:
                self.stats.dropped += 1
                continue
            if blueprint.add_item(result):
                self.stats.classified += 1
            else:
                self.stats.dropped += 1

    async def _analyze_group(self, group: PrimaryGroup) -> Optional[EpisodeOrMovie]:
        primary = group.primary_file
        if not primary.extension:
            return None
        stem = Path(primary.original_filename).stem
        info = await self.classifier.classify_primary(stem, group.parent_name)
        if info is None or info.type == "unknown":
            logger.info("Could not classify %s", primary.source_path)
            return None
        standard_name = info.standard_base_name()
        if not standard_name:
            logger.info(
                "Incomplete classification for %s (%s)", primary.source_path, info.type
            )
            return None
        sidecars = await self._tag_sidecars(standard_name, group.sidecar_files)
        return EpisodeOrMovie.from_classification(group, info, sidecars)

    async def _tag_sidecars(self, standard_name: str, sidecars: List[MediaFile]) -> List[MediaFile]:
        if not sidecars:
            return []
        roles = await asyncio.gather(
            *(
                self.classifier.classify_sidecar_role(standard_name, sidecar.original_filename)
                for sidecar in sidecars
            ),
            return_exceptions=True,
        )
        tagged: List[MediaFile] = []
        for sidecar, role in zip(sidecars, roles):
            if isinstance(role, BaseException):
                logger.warning("Role analysis of %s failed: %s", sidecar.source_path, role)
                role = None
            tagged.append(sidecar.with_role(role))
        return tagged
