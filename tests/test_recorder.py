from datetime import datetime, timedelta, timezone

import pytest

from nota.errors import PersistenceError
from nota.schemas import Session
from nota.session.recorder import JsonSessionRecorder, extract_keywords, generate_title

START = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def _session(text: str, minutes: int = 0) -> Session:
    start = START + timedelta(minutes=minutes)
    return Session(
        start_time=start,
        end_time=start + timedelta(minutes=5),
        committed_transcript=text,
        insights_text="summary",
        language_used="en-US",
    )


def test_persist_and_reload(tmp_path):
    recorder = JsonSessionRecorder(tmp_path / "history" / "sessions.json")
    session = _session("Planning the quarterly roadmap. Then lunch.")

    recorder.persist_session(session)
    entries = JsonSessionRecorder(tmp_path / "history" / "sessions.json").list_sessions()

    assert len(entries) == 1
    assert entries[0].session == session
    assert entries[0].duration == pytest.approx(300)
    assert entries[0].title == "Planning the quarterly roadmap..."
    assert recorder.get_session(session.id) == session


def test_history_is_newest_first_and_capped(tmp_path):
    recorder = JsonSessionRecorder(tmp_path / "sessions.json", limit=3)

    sessions = [_session(f"meeting number {i}", minutes=i) for i in range(5)]
    for session in sessions:
        recorder.persist_session(session)

    ids = [entry.session.id for entry in recorder.list_sessions()]
    assert ids == [sessions[4].id, sessions[3].id, sessions[2].id]


def test_persisting_same_session_twice_replaces_it(tmp_path):
    recorder = JsonSessionRecorder(tmp_path / "sessions.json")
    session = _session("Hello world")

    recorder.persist_session(session)
    recorder.persist_session(session)

    assert len(recorder.list_sessions()) == 1


def test_delete_and_clear(tmp_path):
    recorder = JsonSessionRecorder(tmp_path / "sessions.json")
    first, second = _session("first one"), _session("second one", minutes=1)
    recorder.persist_session(first)
    recorder.persist_session(second)

    assert recorder.delete_session(first.id) is True
    assert recorder.delete_session(first.id) is False
    assert [e.session.id for e in recorder.list_sessions()] == [second.id]

    recorder.clear()
    assert recorder.list_sessions() == []


def test_corrupt_history_starts_fresh(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text("{not json", encoding="utf-8")
    recorder = JsonSessionRecorder(path)

    recorder.persist_session(_session("Hello world"))

    assert len(recorder.list_sessions()) == 1


def test_unwritable_location_raises_persistence_error(tmp_path):
    recorder = JsonSessionRecorder(tmp_path)

    with pytest.raises(PersistenceError):
        recorder.persist_session(_session("Hello world"))


def test_keywords_and_title_helpers():
    text = "The team discussed budget, hiring and the budget review for Berlin."

    assert extract_keywords(text) == ["team", "discussed", "budget", "hiring", "review"]
    assert generate_title("Hi.", "2026-03-02 09:30") == "Meeting 2026-03-02 09:30"
