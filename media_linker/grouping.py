from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Dict, List, Optional

from .models import MediaFile, PrimaryGroup

logger = logging.getLogger(__name__)

# Kodi-style artwork names: "<video name>-poster.jpg" belongs with "<video name>.mkv".
ARTWORK_SUFFIX = re.compile(
    r"^(?P<base>.+)-(?:thumb|poster|fanart|banner|landscape|clearart|clearlogo|logo|discart|keyart)$",
    re.IGNORECASE,
)


def base_name(filename: str) -> str:
    """Filename with its last extension removed ("a.b.mkv" -> "a.b")."""
    return Path(filename).stem


def group_by_base_name(
    directory: Path, filenames: Iterable[str], video_extensions: Iterable[str] = ()
) -> Dict[str, List[MediaFile]]:
    exts = {ext.lower() for ext in video_extensions}
    groups: Dict[str, List[MediaFile]] = {}
    for name in filenames:
        groups.setdefault(base_name(name), []).append(
            MediaFile(source_path=directory / name, original_filename=name)
        )
    for key in list(groups):
        match = ARTWORK_SUFFIX.match(key)
        if not match or match.group("base") not in groups:
            continue
        # A video never folds away; "Show-logo.mkv" stays its own group.
        if any(f.extension.lower() in exts for f in groups[key]):
            continue
        groups[match.group("base")].extend(groups.pop(key))
    return groups


def split_primary(files: List[MediaFile], video_extensions: Iterable[str]) -> Optional[PrimaryGroup]:
    exts = {ext.lower() for ext in video_extensions}
    ordered = sorted(files, key=lambda f: f.original_filename)
    videos = [f for f in ordered if f.extension.lower() in exts]
    if not videos:
        return None
    primary = videos[0]
    if len(videos) > 1:
        logger.warning(
            "Multiple video files share the name %s; using %s as primary",
            primary.source_path.parent / base_name(primary.original_filename),
            primary.original_filename,
        )
    sidecars = [f for f in ordered if f is not primary]
    return PrimaryGroup(primary_file=primary, sidecar_files=sidecars)


def build_primary_groups(
    directory: Path, filenames: Iterable[str], video_extensions: Iterable[str]
) -> List[PrimaryGroup]:
    exts = list(video_extensions)
    groups: List[PrimaryGroup] = []
    for files in group_by_base_name(directory, filenames, exts).values():
        group = split_primary(files, exts)
        if group:
            groups.append(group)
    return groups
