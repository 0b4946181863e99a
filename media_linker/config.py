from __future__ import annotations

import os
from pathlib import Path
from typing import Any, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_VIDEO_EXTENSIONS = [
    ".mkv",
    ".mp4",
    ".avi",
    ".mov",
    ".wmv",
    ".flv",
    ".webm",
    ".ts",
    ".rmvb",
]


def _expand(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


class LibrarySettings(BaseModel):
    roots: List[Path] = Field(default_factory=list)
    video_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_VIDEO_EXTENSIONS))
    exclude_patterns: List[str] = Field(default_factory=list)

    @field_validator("roots", mode="before")
    @classmethod
    def _expand_roots(cls, values: List[str]) -> List[Path]:
        return [_expand(v) for v in values or []]

    @field_validator("video_extensions")
    @classmethod
    def _normalize_extensions(cls, values: List[str]) -> List[str]:
        normalized = []
        for value in values:
            ext = value.strip().lower()
            if ext and not ext.startswith("."):
                ext = f".{ext}"
            if ext:
                normalized.append(ext)
        return normalized


class LinkSettings(BaseModel):
    target_root: Optional[Path] = None
    link_type: Literal["soft", "hard"] = "soft"
    path_mode: Literal["absolute", "relative"] = "absolute"

    @field_validator("target_root", mode="before")
    @classmethod
    def _expand_target(cls, value: Optional[str | Path]) -> Optional[Path]:
        if value is None:
            return None
        return _expand(value)


class ScanSettings(BaseModel):
    concurrency: int = Field(default=10, gt=0)


class ClassifierSettings(BaseModel):
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai"
    model: str = "gemini-1.5-flash"
    api_key: Optional[str] = None
    api_key_env: str = "AI_SCRAPER_API_KEY"
    timeout_seconds: float = Field(default=60.0, gt=0)
    temperature: float = 0.0

    def resolve_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        value = os.environ.get(self.api_key_env, "").strip()
        return value or None


class CacheSettings(BaseModel):
    enabled: bool = True
    path: Path = Path("./cache/media-linker.sqlite3")

    @field_validator("path", mode="before")
    @classmethod
    def _expand_cache(cls, value: str | Path) -> Path:
        return _expand(value)


class DebugSettings(BaseModel):
    enabled: bool = False
    plan_path: Path = Path("./media-linker-plan.json")

    @field_validator("plan_path", mode="before")
    @classmethod
    def _expand_plan(cls, value: str | Path) -> Path:
        return _expand(value)


class Settings(BaseModel):
    library: LibrarySettings = LibrarySettings()
    links: LinkSettings = LinkSettings()
    scan: ScanSettings = ScanSettings()
    classifier: ClassifierSettings = ClassifierSettings()
    cache: CacheSettings = CacheSettings()
    debug: DebugSettings = DebugSettings()

    @classmethod
    def load(cls, path: Path) -> "Settings":
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        return cls.model_validate(raw)

    def with_overrides(
        self,
        *,
        sources: Optional[List[Path]] = None,
        target: Optional[Path] = None,
        link_type: Optional[str] = None,
        path_mode: Optional[str] = None,
        concurrency: Optional[int] = None,
        debug: Optional[bool] = None,
        cache_enabled: Optional[bool] = None,
    ) -> "Settings":
        """Return a re-validated copy with command line values applied on top."""
        data: dict[str, Any] = self.model_dump()
        if sources:
            data["library"]["roots"] = [str(p) for p in sources]
        if target is not None:
            data["links"]["target_root"] = str(target)
        if link_type is not None:
            data["links"]["link_type"] = link_type
        if path_mode is not None:
            data["links"]["path_mode"] = path_mode
        if concurrency is not None:
            data["scan"]["concurrency"] = concurrency
        if debug is not None:
            data["debug"]["enabled"] = debug
        if cache_enabled is not None:
            data["cache"]["enabled"] = cache_enabled
        return Settings.model_validate(data)


def find_config(explicit_path: Optional[Path]) -> Optional[Path]:
    if explicit_path:
        if not explicit_path.exists():
            raise FileNotFoundError(f"Config file not found: {explicit_path}")
        return explicit_path
    cwd = Path.cwd()
    for candidate in (cwd / "config.yaml", cwd / "config.yml"):
        if candidate.exists():
            return candidate
    return None
