from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from threading import Lock
from typing import Any, Optional

PRIMARY = "primary"
SIDECAR_ROLE = "sidecar_role"


class ClassificationCache:
    """SQLite-backed cache for classifier answers, so re-runs skip repeat lookups."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS classifications (
                kind TEXT NOT NULL,
                lookup_key TEXT NOT NULL,
                answer TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY(kind, lookup_key)
            )
            """
        )
        self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def primary_key(filename: str, parent_dir_name: str) -> str:
        return f"{parent_dir_name}/{filename}"

    @staticmethod
    def sidecar_key(standard_base_name: str, sidecar_filename: str) -> str:
        return f"{standard_base_name}|{sidecar_filename}"

    def get_primary(self, filename: str, parent_dir_name: str) -> Optional[dict]:
        return self._get(PRIMARY, self.primary_key(filename, parent_dir_name))

    def set_primary(self, filename: str, parent_dir_name: str, value: dict) -> None:
        self._set(PRIMARY, self.primary_key(filename, parent_dir_name), value)

    def get_sidecar_role(self, standard_base_name: str, sidecar_filename: str) -> Optional[dict]:
        """Return ``{"role": ...}`` when cached; the role itself may be ``None``."""
        return self._get(SIDECAR_ROLE, self.sidecar_key(standard_base_name, sidecar_filename))

    def set_sidecar_role(self, standard_base_name: str, sidecar_filename: str, role: Optional[str]) -> None:
        self._set(SIDECAR_ROLE, self.sidecar_key(standard_base_name, sidecar_filename), {"role": role})

    def count(self, kind: Optional[str] = None) -> int:
        with self._lock:
            if kind:
                cursor = self._conn.execute("SELECT COUNT(*) FROM classifications WHERE kind = ?", (kind,))
            else:
                cursor = self._conn.execute("SELECT COUNT(*) FROM classifications")
            row = cursor.fetchone()
        return int(row[0]) if row else 0

    def clear(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM classifications")
            self._conn.commit()

    def _get(self, kind: str, lookup_key: str) -> Optional[dict]:
        with self._lock:
            row = self._conn.execute(
                "SELECT answer FROM classifications WHERE kind = ? AND lookup_key = ?",
                (kind, lookup_key),
            ).fetchone()
        if not row:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            return None

    def _set(self, kind: str, lookup_key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO classifications(kind, lookup_key, answer, updated_at)
                VALUES(?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(kind, lookup_key) DO UPDATE SET answer=excluded.answer, updated_at=excluded.updated_at
                """,
                (kind, lookup_key, payload),
            )
            self._conn.commit()
