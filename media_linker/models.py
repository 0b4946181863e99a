from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterator, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .fs_utils import sanitize_name

logger = logging.getLogger(__name__)

MediaType = Literal["show", "movie", "unknown"]


class MediaInfo(BaseModel):
    """Structured metadata the classifier derives from a primary file name."""

    title: str
    type: MediaType = "unknown"
    season: Optional[int] = Field(default=None, ge=0)
    episode: Optional[int] = Field(default=None, ge=0)
    year: Optional[int] = None

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    def standard_base_name(self) -> Optional[str]:
        """Display name used as context when classifying sidecar roles."""
        title = sanitize_name(self.title)
        if not title or self.type == "unknown":
            return None
        if self.type == "show":
            if self.season is None or self.episode is None:
                return None
            return f"{title} S{self.season:02d}E{self.episode:02d}"
        if self.year:
            return f"{title} ({self.year})"
        return title


@dataclass(slots=True)
class MediaFile:
    source_path: Path
    original_filename: str
    role: Optional[str] = None

    @property
    def extension(self) -> str:
        return Path(self.original_filename).suffix

    def with_role(self, role: Optional[str]) -> "MediaFile":
        return replace(self, role=role)

    def to_record(self) -> Dict[str, object]:
        return {
            "source_path": str(self.source_path),
            "original_filename": self.original_filename,
            "role": self.role,
        }


@dataclass(slots=True)
class PrimaryGroup:
    primary_file: MediaFile
    sidecar_files: List[MediaFile] = field(default_factory=list)

    @property
    def parent_name(self) -> str:
        return self.primary_file.source_path.parent.name


@dataclass(frozen=True, slots=True)
class EpisodeOrMovie:
    season: Optional[int]
    episode: Optional[int]
    primary_file: MediaFile
    sidecar_files: tuple[MediaFile, ...]
    classification: MediaInfo

    @classmethod
    def from_classification(
        cls, group: PrimaryGroup, info: MediaInfo, sidecars: List[MediaFile]
    ) -> "EpisodeOrMovie":
        return cls(
            season=info.season,
            episode=info.episode,
            primary_file=group.primary_file,
            sidecar_files=tuple(sidecars),
            classification=info,
        )

    def to_record(self) -> Dict[str, object]:
        return {
            "season": self.season,
            "episode": self.episode,
            "primary_file": self.primary_file.to_record(),
            "sidecar_files": [sidecar.to_record() for sidecar in self.sidecar_files],
            "classification": self.classification.model_dump(),
        }


@dataclass(slots=True)
class SeriesRecord:
    type: Literal["show", "movie"]
    title_votes: Counter[str] = field(default_factory=Counter)
    year_votes: Counter[int] = field(default_factory=Counter)
    items: List[EpisodeOrMovie] = field(default_factory=list)
    canonical_title: Optional[str] = None
    canonical_year: Optional[int] = None

    def add(self, item: EpisodeOrMovie, title: str) -> None:
        self.items.append(item)
        self.title_votes[title] += 1
        if item.classification.year is not None:
            self.year_votes[item.classification.year] += 1

    def absorb(self, other: "SeriesRecord") -> None:
        """Append another record's items and sum its vote tallies into ours."""
        self.items.extend(other.items)
        self.title_votes.update(other.title_votes)
        self.year_votes.update(other.year_votes)

    def elect_year(self) -> Optional[int]:
        # Strictly greater wins, so ties keep the year that was tallied first.
        best: Optional[int] = None
        best_votes = 0
        for year, votes in self.year_votes.items():
            if votes > best_votes:
                best, best_votes = year, votes
        return best

    def to_record(self) -> Dict[str, object]:
        return {
            "type": self.type,
            "canonical_title": self.canonical_title,
            "canonical_year": self.canonical_year,
            "title_votes": dict(self.title_votes),
            "year_votes": {str(year): votes for year, votes in self.year_votes.items()},
            "items": [item.to_record() for item in self.items],
        }


class Blueprint:
    """Ordered mapping of title -> SeriesRecord for one run.

    Iteration follows insertion order, which is also the order every
    tie-break in consolidation relies on.
    """

    def __init__(self) -> None:
        self._records: Dict[str, SeriesRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, title: object) -> bool:
        return title in self._records

    def __getitem__(self, title: str) -> SeriesRecord:
        return self._records[title]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def get(self, title: str) -> Optional[SeriesRecord]:
        return self._records.get(title)

    def titles(self) -> List[str]:
        return list(self._records)

    def items(self):
        return self._records.items()

    def records(self) -> List[SeriesRecord]:
        return list(self._records.values())

    def setdefault(self, title: str, record: SeriesRecord) -> SeriesRecord:
        return self._records.setdefault(title, record)

    def add_item(self, item: EpisodeOrMovie) -> bool:
        info = item.classification
        if info.type == "unknown":
            return False
        title = info.title
        record = self._records.get(title)
        if record is None:
            record = SeriesRecord(type=info.type)
            self._records[title] = record
        elif record.type != info.type:
            logger.warning(
                "Dropping %s: classified as %s but %r is already a %s",
                item.primary_file.source_path,
                info.type,
                title,
                record.type,
            )
            return False
        record.add(item, title)
        return True

    def item_count(self) -> int:
        return sum(len(record.items) for record in self._records.values())

    def to_record(self) -> Dict[str, object]:
        return {title: record.to_record() for title, record in self._records.items()}


def existing_link_id(
    series_title: str, season: Optional[int] = None, episode: Optional[int] = None
) -> str:
    if season is None or episode is None:
        return series_title
    return f"{series_title}-S{season}E{episode}"
