from nota.audio.ports import AudioFormat
from nota.schemas import ProviderConfig, ProviderKind

from .assemblyai import AssemblyAISession
from .base import ProviderSession
from .deepgram import DeepgramSession
from .selector import DEFAULT_POLICIES, ProviderPolicy, ProviderSelector
from .whisper import WhisperSession

SESSION_TYPES = {
    ProviderKind.DEEPGRAM: DeepgramSession,
    ProviderKind.ASSEMBLYAI: AssemblyAISession,
    ProviderKind.WHISPER: WhisperSession,
}


def build_session(config: ProviderConfig, language: str, audio_format: AudioFormat | None = None) -> ProviderSession:
    session_type = SESSION_TYPES.get(config.kind)
    if session_type is None:
        raise ValueError(f"Unsupported provider: {config.kind}")
    return session_type(config, language, audio_format)


__all__ = [
    "AssemblyAISession",
    "DEFAULT_POLICIES",
    "DeepgramSession",
    "ProviderPolicy",
    "ProviderSelector",
    "ProviderSession",
    "WhisperSession",
    "build_session",
]
