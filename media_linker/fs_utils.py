from __future__ import annotations

import enum
import errno
import logging
import os
import re
import stat
from pathlib import Path

logger = logging.getLogger(__name__)

ILLEGAL_NAME_CHARS = re.compile(r'[<>:"/\\|?*]')


class LinkOutcome(enum.Enum):
    CREATED = "created"
    EXISTS = "exists"
    FAILED = "failed"


def sanitize_name(value: str) -> str:
    return ILLEGAL_NAME_CHARS.sub("", value).strip()


def is_symlink(path: Path) -> bool:
    return stat.S_ISLNK(os.lstat(path).st_mode)


def ensure_directory(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
        return True
    except FileExistsError:
        # A non-directory already occupies the path.
        logger.warning("Cannot create directory %s: a file is in the way", path)
        return False
    except OSError as exc:
        logger.warning("Cannot create directory %s: %s", path, exc)
        return False


def link_source(source: Path, destination: Path, link_type: str, path_mode: str) -> str:
    absolute = os.path.abspath(source)
    if link_type == "soft" and path_mode == "relative":
        return os.path.relpath(absolute, os.path.abspath(destination.parent))
    return absolute


def create_link(source: Path, destination: Path, link_type: str, path_mode: str) -> LinkOutcome:
    """Create ``destination`` pointing at ``source``; an existing destination counts as success."""
    target = link_source(source, destination, link_type, path_mode)
    try:
        if link_type == "soft":
            os.symlink(target, destination)
        else:
            os.link(target, destination)
    except FileExistsError:
        return LinkOutcome.EXISTS
    except OSError as exc:
        if exc.errno == errno.EEXIST:
            return LinkOutcome.EXISTS
        logger.error("Failed to create %s link %s -> %s: %s", link_type, destination, source, exc)
        return LinkOutcome.FAILED
    logger.debug("Linked %s -> %s", destination, target)
    return LinkOutcome.CREATED
