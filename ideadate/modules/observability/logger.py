"""
modules/observability/logger.py
─────────────────────────────────────────────────────────────────────────────
Refine-session event trail — one JSON object per line, one file per plan.

Every RefineSession event (refine_started, refine_completed, refine_superseded,
refine_rejected_busy, suggestion_applied, undo_applied, undo_unavailable)
becomes a record:

    {"timestamp": ..., "session_id": <plan id>, "seq": <n>,
     "event_type": ..., "payload": {...}}

`seq` counts records per plan id within one StructuredLogger, so a trail can
be replayed in write order even when timestamps collide.

Usage:
    events = StructuredLogger(tmp_dir)
    session = RefineSession(plan, resolver=chain, events=events)
    ...
    read_events(plan.id, logs_dir=tmp_dir)
─────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Iterable, Optional

logger = logging.getLogger(__name__)

# Default trail directory: <repo root>/logs
_LOGS_DIR: Path = Path(__file__).resolve().parents[3] / "logs"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def trail_filename(session_id: str) -> str:
    """Plan ids are caller data; keep them from escaping the logs directory."""
    cleaned = _UNSAFE_CHARS.sub("_", session_id).strip("._")
    return f"{cleaned or 'session'}.jsonl"


class StructuredLogger:
    """Append-only JSONL event writer shared by one or more refine sessions."""

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._logs_dir = Path(logs_dir) if logs_dir else _LOGS_DIR
        self._lock = threading.Lock()
        self._files: dict[str, IO[str]] = {}
        self._seq: dict[str, int] = {}

    @property
    def logs_dir(self) -> Path:
        return self._logs_dir

    def log(self, session_id: str, event_type: str, payload: Optional[dict] = None) -> int:
        """Write one event and return its sequence number for this session."""
        with self._lock:
            seq = self._seq.get(session_id, 0) + 1
            self._seq[session_id] = seq
            record = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "session_id": session_id,
                "seq": seq,
                "event_type": event_type,
                "payload": payload or {},
            }
            handle = self._files.get(session_id) or self._open(session_id)
            handle.write(json.dumps(record, default=str, ensure_ascii=False) + "\n")
            handle.flush()
        logger.debug("[Events] %s #%d %s", session_id, seq, event_type)
        return seq

    def close(self, session_id: str | None = None) -> None:
        with self._lock:
            ids = [session_id] if session_id else list(self._files)
            for sid in ids:
                handle = self._files.pop(sid, None)
                if handle is not None:
                    handle.close()

    def _open(self, session_id: str) -> IO[str]:
        self._logs_dir.mkdir(parents=True, exist_ok=True)
        path = self._logs_dir / trail_filename(session_id)
        handle = path.open("a", encoding="utf-8")
        self._files[session_id] = handle
        return handle


def read_events(session_id: str, *, logs_dir: Path | str | None = None) -> list[dict]:
    """All records for one plan id, ordered by `seq` then file position."""
    path = (Path(logs_dir) if logs_dir else _LOGS_DIR) / trail_filename(session_id)
    if not path.exists():
        raise FileNotFoundError(f"No event trail for session {session_id!r}: {path}")

    with path.open("r", encoding="utf-8") as fh:
        records = [json.loads(line) for line in fh if line.strip()]
    return sorted(records, key=lambda r: r.get("seq", 0))


def event_types(records: Iterable[dict]) -> list[str]:
    return [record["event_type"] for record in records]
