from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from .models import Blueprint

logger = logging.getLogger(__name__)


def write_plan(blueprint: Blueprint, output_path: Path) -> Path:
    """Write the consolidated blueprint as pretty-printed JSON, replacing any previous plan."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(blueprint.to_record(), indent=2, ensure_ascii=False)
    fd, tmp_name = tempfile.mkstemp(prefix=".plan-", suffix=".json", dir=output_path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload + "\n")
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.info("Wrote plan for %d title(s) to %s", len(blueprint), output_path)
    return output_path
