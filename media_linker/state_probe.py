from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Set

from .fs_utils import is_symlink
from .models import existing_link_id

logger = logging.getLogger(__name__)

EPISODE_PATTERN = re.compile(r"S(\d{1,4})\s*E(\d{1,4})", re.IGNORECASE)
YEAR_SUFFIX = re.compile(r"\s*\(\d{4}\)$")


def series_name_from_directory(name: str) -> str:
    return YEAR_SUFFIX.sub("", name).strip()


def probe_existing_links(target_root: Path, link_type: str) -> Set[str]:
    """
    Collect the identities of episodes already linked under ``target_root``.

    Hard links look like ordinary files, so they are never probed; re-runs
    rely on "already exists" being treated as success instead.
    """
    if link_type != "soft":
        return set()
    try:
        found = _scan_series(target_root)
    except FileNotFoundError:
        return set()
    except OSError as exc:
        logger.warning("Cannot inspect existing links in %s: %s", target_root, exc)
        return set()
    logger.info("Found %d existing episode link(s) in %s", len(found), target_root)
    return found


def _scan_series(target_root: Path) -> Set[str]:
    found: Set[str] = set()
    for series_dir in _subdirectories(target_root):
        series_name = series_name_from_directory(series_dir.name)
        for season_dir in _subdirectories(series_dir):
            if not season_dir.name.lower().startswith("season"):
                continue
            try:
                found.update(_scan_season(season_dir, series_name))
            except FileNotFoundError:
                continue
    return found


def _scan_season(season_dir: Path, series_name: str) -> Set[str]:
    found: Set[str] = set()
    with os.scandir(season_dir) as it:
        names = [entry.name for entry in it]
    for name in names:
        path = season_dir / name
        try:
            if not is_symlink(path):
                continue
        except FileNotFoundError:
            continue
        match = EPISODE_PATTERN.search(name)
        if not match:
            continue
        season, episode = int(match.group(1)), int(match.group(2))
        found.add(existing_link_id(series_name, season, episode))
    return found


def _subdirectories(directory: Path) -> list[Path]:
    try:
        with os.scandir(directory) as it:
            return [directory / entry.name for entry in it if entry.is_dir(follow_symlinks=False)]
    except FileNotFoundError:
        return []
