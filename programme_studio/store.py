"""SQLite-backed key-value store for the single working document and alignment ticks."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .template import blank_programme, load_programme, now_iso

logger = logging.getLogger(__name__)

STORAGE_KEY = "programmeDesignStudio"


def alignment_key(plo_id: str, assessment_id: str) -> str:
    return f"map-{plo_id}-{assessment_id}"


class ProgrammeStore:
    """Whole-document persistence under one fixed key; last write wins."""

    def __init__(self, db_path: Union[Path, str]):
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        # the FastAPI host may serve requests from a worker thread
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """)

    def close(self) -> None:
        self._conn.close()

    def _get(self, key: str) -> Optional[str]:
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def _set(self, key: str, value: str) -> None:
        with self._conn:
            self._conn.execute("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value))

    # ---- Document ----
    def save(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc["lastModified"] = now_iso()
        self._set(STORAGE_KEY, json.dumps(doc, ensure_ascii=False))
        logger.debug(f"Saved programme '{doc.get('programmeTitle')}'")
        return doc

    def load(self) -> Optional[Dict[str, Any]]:
        """Stored document, migrated; ``None`` when nothing has been saved yet."""
        stored = self._get(STORAGE_KEY)
        if stored is None:
            return None
        try:
            raw = json.loads(stored)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse stored programme: {e}")
            return blank_programme()
        return load_programme(raw, stamp=False)

    def load_or_blank(self) -> Dict[str, Any]:
        doc = self.load()
        return doc if doc is not None else blank_programme()

    def clear(self) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (STORAGE_KEY,))
        logger.info("Cleared stored programme")

    # ---- Alignment ----
    def set_alignment(self, plo_id: str, assessment_id: str, aligned: bool) -> None:
        self._set(alignment_key(plo_id, assessment_id), "true" if aligned else "false")

    def is_aligned(self, plo_id: str, assessment_id: str) -> bool:
        return self._get(alignment_key(plo_id, assessment_id)) == "true"

    def clear_alignment(self) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM kv WHERE key LIKE 'map-%'")
