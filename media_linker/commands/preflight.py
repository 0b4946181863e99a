from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import Settings


@dataclass(frozen=True, slots=True)
class CheckLine:
    label: str
    status: str
    detail: Optional[str] = None

    def render(self) -> str:
        if self.detail:
            return f"{self.label}: {self.status} ({self.detail})"
        return f"{self.label}: {self.status}"


@dataclass(slots=True)
class PreflightReport:
    ok: bool
    checks: list[str]


def passed(label: str, detail: Optional[str] = None) -> str:
    return CheckLine(label, "OK", detail).render()


def failed(label: str, detail: Optional[str] = None) -> str:
    return CheckLine(label, "FAILED", detail).render()


def skipped(label: str, detail: Optional[str] = None) -> str:
    return CheckLine(label, "SKIPPED", detail).render()


def _target_writable(target: Path) -> Optional[str]:
    try:
        target.mkdir(parents=True, exist_ok=True)
        probe = target / f".permission_test_{uuid.uuid4().hex}"
        probe.write_text("test", encoding="utf-8")
        probe.unlink()
    except OSError as exc:
        return str(exc)
    return None


def run(
    settings: Settings, *, require_credentials: bool = True, require_target: bool = True
) -> PreflightReport:
    """Check everything a run needs before any scanning starts."""
    checks: list[str] = []
    ok = True

    if not require_credentials:
        checks.append(skipped("API key"))
    elif settings.classifier.resolve_api_key():
        checks.append(passed("API key", f"model {settings.classifier.model}"))
    else:
        ok = False
        checks.append(failed("API key", f"set {settings.classifier.api_key_env}"))

    roots = settings.library.roots
    unreadable = [
        str(root) for root in roots if not (root.is_dir() and os.access(root, os.R_OK | os.X_OK))
    ]
    if not roots:
        ok = False
        checks.append(failed("Source roots", "no source directory given"))
    elif unreadable:
        ok = False
        checks.append(failed("Source roots", f"unreadable: {', '.join(unreadable)}"))
    else:
        checks.append(passed("Source roots", f"{len(roots)} root(s)"))

    target = settings.links.target_root
    if not require_target:
        checks.append(skipped("Target root", "plan only"))
    elif target is None:
        ok = False
        checks.append(failed("Target root", "no target directory given"))
    else:
        problem = _target_writable(target)
        if problem:
            ok = False
            checks.append(failed("Target root", f"not writable: {problem}"))
        else:
            checks.append(passed("Target root", str(target)))

    checks.append(passed("Link options", f"{settings.links.link_type}/{settings.links.path_mode}"))

    return PreflightReport(ok=ok, checks=checks)
