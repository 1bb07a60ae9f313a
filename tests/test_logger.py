import json
import logging

from nota.core.logger import event_payload, log_event
from nota.core.state import RecordingState


def test_payload_carries_recording_fields_and_redacts_speech():
    payload = event_payload(
        "orchestrator",
        "stopped",
        "rec-1",
        provider="deepgram",
        state=RecordingState.STOPPING,
        transcript="Hello world",
        chain=["deepgram", "whisper"],
    )

    assert payload["component"] == "orchestrator"
    assert payload["recording_id"] == "rec-1"
    assert payload["provider"] == "deepgram"
    assert payload["state"] == RecordingState.STOPPING.value
    assert payload["transcript"] == {"redacted": True, "length": 11}
    assert payload["chain"] == ["deepgram", "whisper"]


def test_log_event_writes_one_json_line(caplog):
    with caplog.at_level(logging.INFO, logger="nota.events"):
        log_event("orchestrator", "failover", "rec-2", provider="assemblyai", replay_from=640)

    record = json.loads(caplog.records[-1].getMessage())
    assert record["event"] == "failover"
    assert record["provider"] == "assemblyai"
    assert record["state"] is None
    assert record["replay_from"] == 640
