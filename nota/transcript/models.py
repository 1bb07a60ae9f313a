from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import time


class EventKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    LANGUAGE_DETECTED = "language_detected"
    ERROR = "error"
    SESSION_META = "session_meta"


@dataclass(frozen=True)
class TranscriptEvent:
    """
    One decoded provider message.
    PARTIAL text is preview only; FINAL text is appended to the record.
    """
    kind: EventKind
    source: str = "unknown"  # deepgram | assemblyai | whisper
    text: Optional[str] = None
    is_end_of_turn: bool = False
    detected_language: Optional[str] = None
    confidence: Optional[float] = None
    error_message: Optional[str] = None
    # Seconds of session audio the text covers, counted from the first byte sent
    audio_end: Optional[float] = None
    meta: dict = field(default_factory=dict)
    received_ts: float = field(default_factory=time.time)

    @classmethod
    def partial(cls, source: str, text: str, **kwargs) -> "TranscriptEvent":
        return cls(kind=EventKind.PARTIAL, source=source, text=text, **kwargs)

    @classmethod
    def final(cls, source: str, text: str, **kwargs) -> "TranscriptEvent":
        return cls(kind=EventKind.FINAL, source=source, text=text, is_end_of_turn=True, **kwargs)

    @classmethod
    def error(cls, source: str, message: str) -> "TranscriptEvent":
        return cls(kind=EventKind.ERROR, source=source, error_message=message)


@dataclass(frozen=True)
class TranscriptSnapshot:
    """
    What observers see on every publish.
    """
    committed: str = ""
    interim: str = ""
    connection_status: str = "Ready"
    live_insight: str = ""
    provider: Optional[str] = None

    @property
    def displayed(self) -> str:
        if not self.interim:
            return self.committed
        if not self.committed:
            return self.interim
        return f"{self.committed} {self.interim}"
