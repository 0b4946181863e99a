from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence, Union

from media_linker.models import MediaInfo

Answer = Union[MediaInfo, Exception, None]


class FakeClassifier:
    """Deterministic stand-in for the network classifier.

    ``primary`` maps a filename stem to a MediaInfo, an exception to raise, or
    None. ``roles`` maps a sidecar filename to a role or an exception.
    """

    def __init__(
        self,
        primary: Optional[Dict[str, Answer]] = None,
        roles: Optional[Dict[str, Union[str, Exception, None]]] = None,
        mapping: Optional[Dict[str, str]] = None,
        mapping_fails: bool = False,
    ) -> None:
        self.primary = primary or {}
        self.roles = roles or {}
        self.mapping = mapping
        self.mapping_fails = mapping_fails
        self.primary_calls: List[tuple[str, str]] = []
        self.role_calls: List[tuple[str, str]] = []
        self.canonical_calls: List[List[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def classify_primary(self, filename: str, parent_dir_name: str) -> Optional[MediaInfo]:
        self.primary_calls.append((filename, parent_dir_name))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            answer = self.primary.get(filename)
            if isinstance(answer, Exception):
                raise answer
            return answer
        finally:
            self.in_flight -= 1

    async def classify_sidecar_role(self, standard_base_name: str, sidecar_filename: str) -> Optional[str]:
        self.role_calls.append((standard_base_name, sidecar_filename))
        await asyncio.sleep(0)
        role = self.roles.get(sidecar_filename)
        if isinstance(role, Exception):
            raise role
        return role

    async def canonicalize_titles(self, raw_titles: Sequence[str]) -> Optional[Dict[str, str]]:
        self.canonical_calls.append(list(raw_titles))
        if self.mapping_fails:
            return None
        if self.mapping is None:
            return {title: title for title in raw_titles}
        return dict(self.mapping)


def show(title: str, season: int, episode: int, year: Optional[int] = None) -> MediaInfo:
    return MediaInfo(title=title, type="show", season=season, episode=episode, year=year)


def movie(title: str, year: Optional[int] = None) -> MediaInfo:
    return MediaInfo(title=title, type="movie", year=year)
