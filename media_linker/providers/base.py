from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Sequence

from ..models import MediaInfo


class MediaClassifier(Protocol):
    """Turns raw names into structured media metadata.

    Implementations must not raise: every failure is reported as ``None`` so
    callers can drop the single affected item and keep going.
    """

    async def classify_primary(self, filename: str, parent_dir_name: str) -> Optional[MediaInfo]: ...

    async def classify_sidecar_role(self, standard_base_name: str, sidecar_filename: str) -> Optional[str]: ...

    async def canonicalize_titles(self, raw_titles: Sequence[str]) -> Optional[Dict[str, str]]: ...


def unique_titles(raw_titles: Sequence[str]) -> List[str]:
    seen: dict[str, None] = {}
    for title in raw_titles:
        if title:
            seen.setdefault(title, None)
    return list(seen)
