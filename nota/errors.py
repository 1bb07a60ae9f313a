from __future__ import annotations


class NotaError(Exception):
    user_message = "Something went wrong"


# -------------------------
# PROVIDER FAILURES
# -------------------------

class ProviderError(NotaError):
    def __init__(self, message: str = "", provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class ConnectError(ProviderError):
    """Handshake, DNS or connect failure while opening a provider session."""


class AuthError(ProviderError):
    """Missing or rejected API key. Never retried for the same provider."""


class ProtocolError(ProviderError):
    """Malformed or unexpected provider message."""


class TransportError(ProviderError):
    """Socket dropped or upload failed mid-session."""


# -------------------------
# RECORDING FAILURES
# -------------------------

class RecordingError(NotaError):
    pass


class AlreadyRecordingError(RecordingError):
    user_message = "Already recording"


class NoProviderConfiguredError(RecordingError):
    user_message = "No transcription provider configured - add an API key in Settings"


class PermissionDeniedError(RecordingError):
    user_message = "Microphone access denied - enable in System Settings"


class AllProvidersFailedError(RecordingError):
    user_message = "No transcription available - all providers failed"


class PersistenceError(NotaError):
    user_message = "Could not save recording"


class AnalysisError(NotaError):
    user_message = "Analysis unavailable"
