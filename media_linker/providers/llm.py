from __future__ import annotations

import asyncio
import json
import logging
import re
import urllib.error
import urllib.request
from typing import Any, Callable, Dict, Optional, Sequence

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..cache import ClassificationCache
from ..config import ClassifierSettings
from ..fs_utils import sanitize_name
from ..models import MediaInfo
from .base import unique_titles
from .usage import UsageStats

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You organise media libraries for Plex and Jellyfin. "
    "Answer with a single JSON object and nothing else."
)

_CANONICAL_MAPPING = TypeAdapter(Dict[str, str])
_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


class ClassifierError(RuntimeError):
    pass


class SidecarRoleAnswer(BaseModel):
    role: Optional[str] = None


def build_primary_prompt(filename: str, parent_dir_name: str) -> str:
    return f"""Identify the show or movie behind a media file.

File name: "{filename}"
Parent directory: "{parent_dir_name}"

Rules:
1. Find the main, official title. It usually sits at the start of the file or directory name.
2. Names may carry both a Chinese and an English title separated by dots, e.g.
   "苦尽柑来遇见你.When.Life.Gives.You.Tangerines.2025...". Prefer the English title
   ("When Life Gives You Tangerines") since it scrapes best.
3. "title" must be the clean title only: no technical tags, release group, year or aliases.
4. Extract the season (Season/S) and episode (Episode/E) numbers for episodes.
5. Extract the release year (four digits) when present.
6. If nothing reliable can be determined set "type" to "unknown".

Return JSON with the keys: "title" (string), "type" ("show", "movie" or "unknown"),
"season" (integer or null), "episode" (integer or null), "year" (integer or null)."""


def build_sidecar_prompt(standard_base_name: str, sidecar_filename: str) -> str:
    return f"""Identify the role of a file that sits next to a video.

Standard name of the video (without extension): "{standard_base_name}"
File to classify: "{sidecar_filename}"

Answer "thumb" for a thumbnail, "poster" for a poster, "fanart" for fan art,
"subtitle" for subtitles (.srt, .ass, .sup), "nfo" for an info file (.nfo).
Answer null if the file has no special role or is just a same-named file.

Return JSON: {{"role": string or null}}."""


def build_canonical_prompt(titles: Sequence[str]) -> str:
    listing = "\n".join(f"- {title}" for title in titles)
    return f"""These series titles were extracted from file names. The same series may
appear several times in different languages or spellings. Group them and pick one
unique, standard English title per group as its official title.

Titles:
{listing}

Return a JSON object whose keys are every title from the list above and whose
values are the official title of the group each belongs to. For example, given
"瑞克和莫蒂" and "Rick and Morty" return
{{"瑞克和莫蒂": "Rick and Morty", "Rick and Morty": "Rick and Morty"}}.
Titles like "DAN.DA.DAN" and "DAN DA DAN" should both become "Dan Da Dan"."""


def chat_completions_url(base_url: str) -> str:
    base = base_url.rstrip("/")
    if base.endswith("/chat/completions"):
        return base
    return f"{base}/chat/completions"


def parse_json_content(content: str) -> Any:
    text = _FENCE.sub("", content.strip())
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError as exc:
            raise ClassifierError(f"response is not valid JSON: {exc}") from exc
    raise ClassifierError("response contains no JSON object")


def normalize_role(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    role = sanitize_name(value).lower()
    role = _WHITESPACE.sub("-", role).strip("-.")
    if role in {"", "null", "none"}:
        return None
    return role


class LLMClassifier:
    """MediaClassifier backed by an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        settings: ClassifierSettings,
        cache: Optional[ClassificationCache] = None,
        stats: Optional[UsageStats] = None,
        api_key: Optional[str] = None,
    ) -> None:
        key = api_key or settings.resolve_api_key()
        if not key:
            raise ValueError(f"Classifier API key missing; set {settings.api_key_env}")
        self.api_key = key
        self.url = chat_completions_url(settings.base_url)
        self.model = settings.model
        self.timeout = settings.timeout_seconds
        self.temperature = settings.temperature
        self.cache = cache
        self.stats = stats or UsageStats()

    async def classify_primary(self, filename: str, parent_dir_name: str) -> Optional[MediaInfo]:
        if self.cache:
            cached = await self._offload(self.cache.get_primary, filename, parent_dir_name)
            if cached is not None:
                try:
                    info = MediaInfo.model_validate(cached)
                except ValidationError:
                    logger.debug("Ignoring stale cache entry for %s", filename)
                else:
                    self.stats.add_cache_hit()
                    return info
        try:
            payload = await self._chat(build_primary_prompt(filename, parent_dir_name))
            info = MediaInfo.model_validate(payload)
        except (ClassifierError, ValidationError) as exc:
            self.stats.add_failure()
            logger.warning("Classifying %r failed: %s", filename, exc)
            return None
        if self.cache and info.type != "unknown":
            await self._offload(self.cache.set_primary, filename, parent_dir_name, info.model_dump())
        return info

    async def classify_sidecar_role(self, standard_base_name: str, sidecar_filename: str) -> Optional[str]:
        if self.cache:
            cached = await self._offload(
                self.cache.get_sidecar_role, standard_base_name, sidecar_filename
            )
            if cached is not None:
                self.stats.add_cache_hit()
                return normalize_role(cached.get("role"))
        try:
            payload = await self._chat(build_sidecar_prompt(standard_base_name, sidecar_filename))
            answer = SidecarRoleAnswer.model_validate(payload)
        except (ClassifierError, ValidationError) as exc:
            self.stats.add_failure()
            logger.warning("Role analysis of %r failed: %s", sidecar_filename, exc)
            return None
        role = normalize_role(answer.role)
        if self.cache:
            await self._offload(self.cache.set_sidecar_role, standard_base_name, sidecar_filename, role)
        return role

    async def canonicalize_titles(self, raw_titles: Sequence[str]) -> Optional[Dict[str, str]]:
        titles = unique_titles(raw_titles)
        if not titles:
            return {}
        try:
            payload = await self._chat(build_canonical_prompt(titles))
            mapping = _CANONICAL_MAPPING.validate_python(payload)
        except (ClassifierError, ValidationError) as exc:
            self.stats.add_failure()
            logger.error("Canonical title mapping failed: %s", exc)
            return None
        return {raw: canonical.strip() for raw, canonical in mapping.items() if canonical.strip()}

    async def _chat(self, prompt: str) -> Any:
        return await self._offload(self._request_json, prompt)

    async def _offload(self, func: Callable[..., Any], *args: Any) -> Any:
        # sqlite and urllib both block; keep them off the event loop.
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _request_json(self, prompt: str) -> Any:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }
        data = self._post(body)
        self.stats.add_request(data.get("usage") if isinstance(data, dict) else None)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ClassifierError(f"unexpected response shape: {exc!r}") from exc
        if not isinstance(content, str):
            raise ClassifierError("response has no text content")
        return parse_json_content(content)

    def _post(self, body: dict) -> Any:
        request = urllib.request.Request(
            self.url,
            data=json.dumps(body).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                return json.load(response)
        except urllib.error.HTTPError as exc:
            raise ClassifierError(f"HTTP error {exc.code} from classifier") from exc
        except urllib.error.URLError as exc:
            raise ClassifierError(f"unable to reach classifier: {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise ClassifierError(f"classifier request failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ClassifierError(f"classifier returned invalid JSON: {exc}") from exc
