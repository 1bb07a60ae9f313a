from __future__ import annotations

import logging
import os
import tempfile
import uuid
from pathlib import Path
from threading import Lock
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from nota.core.config import SESSION_HISTORY_LIMIT, SESSIONS_PATH
from nota.errors import PersistenceError
from nota.schemas import Session, SessionEntry

logger = logging.getLogger("nota.session.recorder")

_COMMON_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should", "that", "this", "there", "what", "about",
}

_ENTRIES = TypeAdapter(list[SessionEntry])


class SessionRecorder(Protocol):
    def persist_session(self, session: Session) -> None:
        ...


def extract_keywords(text: str, limit: int = 5) -> list[str]:
    keywords: list[str] = []
    for raw in str(text or "").lower().split():
        word = raw.strip(".,!?;:\"'()[]")
        if len(word) <= 3 or word in _COMMON_WORDS or word in keywords:
            continue
        keywords.append(word)
        if len(keywords) >= limit:
            break
    return keywords


def generate_title(text: str, started: str = "") -> str:
    first_sentence = str(text or "").split(". ")[0].strip()
    if len(first_sentence) > 10:
        title = first_sentence[:50]
        return title if title.endswith("...") else title + "..."
    return f"Meeting {started}".strip()


class JsonSessionRecorder:
    """
    Recording history in a single JSON file, newest first, capped at
    `limit` entries.
    """

    def __init__(self, path: Path | str = SESSIONS_PATH, limit: int = SESSION_HISTORY_LIMIT):
        self.path = Path(path)
        self.limit = max(1, int(limit))
        self._lock = Lock()

    def _load(self) -> list[SessionEntry]:
        if not self.path.exists():
            return []
        try:
            return _ENTRIES.validate_json(self.path.read_bytes())
        except ValidationError as exc:
            logger.warning("Session history unreadable, starting fresh: %s", exc)
            return []
        except OSError as exc:
            raise PersistenceError(f"cannot read {self.path}: {exc}") from exc

    def _save(self, entries: list[SessionEntry]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".sessions-", suffix=".json")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(_ENTRIES.dump_json(entries, indent=2))
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            raise PersistenceError(f"cannot write {self.path}: {exc}") from exc

    def persist_session(self, session: Session) -> None:
        entry = SessionEntry(
            session=session,
            title=generate_title(session.committed_transcript, session.start_time.strftime("%Y-%m-%d %H:%M")),
            keywords=extract_keywords(session.committed_transcript),
            duration=session.duration,
        )
        with self._lock:
            entries = [e for e in self._load() if e.session.id != session.id]
            entries.insert(0, entry)
            self._save(entries[: self.limit])
        logger.info(
            "Session saved | id=%s duration=%.0fs chars=%s",
            session.id,
            session.duration,
            len(session.committed_transcript),
        )

    def list_sessions(self) -> list[SessionEntry]:
        with self._lock:
            entries = self._load()
        return sorted(entries, key=lambda e: e.session.start_time, reverse=True)

    def get_session(self, session_id: uuid.UUID) -> Session | None:
        for entry in self.list_sessions():
            if entry.session.id == session_id:
                return entry.session
        return None

    def delete_session(self, session_id: uuid.UUID) -> bool:
        with self._lock:
            entries = self._load()
            kept = [e for e in entries if e.session.id != session_id]
            if len(kept) == len(entries):
                return False
            self._save(kept)
        logger.info("Session deleted | id=%s", session_id)
        return True

    def clear(self) -> None:
        with self._lock:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as exc:
                raise PersistenceError(f"cannot remove {self.path}: {exc}") from exc
        logger.info("All sessions cleared")
