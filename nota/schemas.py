from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ProviderKind(str, Enum):
    DEEPGRAM = "deepgram"
    ASSEMBLYAI = "assemblyai"
    WHISPER = "whisper"


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ProviderKind
    api_key: str | None = None
    language_hint: str = "auto"

    @property
    def has_key(self) -> bool:
        return bool(str(self.api_key or "").strip())


class RecordingSettings(BaseModel):
    """
    Immutable per-recording configuration snapshot.
    """
    model_config = ConfigDict(frozen=True)

    providers: dict[ProviderKind, ProviderConfig] = Field(default_factory=dict)
    preference: ProviderKind | None = None
    language: str = "auto"
    input_device: str = "default"
    openai_api_key: str | None = None

    def provider(self, kind: ProviderKind) -> ProviderConfig:
        config = self.providers.get(kind)
        if config is None:
            return ProviderConfig(kind=kind, language_hint=self.language)
        return config


class Session(BaseModel):
    """
    Finished recording handed to the session recorder.
    """
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    start_time: datetime
    end_time: datetime
    committed_transcript: str = ""
    insights_text: str = ""
    language_used: str = "en-US"

    @property
    def duration(self) -> float:
        return max(0.0, (self.end_time - self.start_time).total_seconds())


class SessionEntry(BaseModel):
    """
    Session as stored in the history file, with derived display fields.
    """
    session: Session
    title: str = ""
    keywords: list[str] = Field(default_factory=list)
    duration: float = 0.0
