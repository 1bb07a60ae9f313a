from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from nota.audio.ports import AudioFormat
from nota.core.state import SessionState
from nota.errors import AuthError, ConnectError, ProtocolError, ProviderError, TransportError
from nota.schemas import ProviderConfig, ProviderKind
from nota.transcript.models import EventKind, TranscriptEvent

logger = logging.getLogger("nota.providers")

MAX_CONSECUTIVE_PROTOCOL_ERRORS = 3


class ProviderSession:
    """
    One transcription connection. Single use: Idle -> Connecting -> Streaming
    -> Draining -> Closed, or Errored from Connecting/Streaming. A failed
    instance is never reopened; callers build a new one.
    """

    kind: ProviderKind
    log_prefix = "[STT]"

    def __init__(self, config: ProviderConfig, language: str, audio_format: AudioFormat | None = None):
        self.config = config
        self.language = language
        self.audio_format = audio_format or AudioFormat()
        self.state = SessionState.IDLE
        self.error: ProviderError | None = None
        self.detected_language: str | None = None
        self._events: asyncio.Queue = asyncio.Queue()
        self._ended = False
        self._protocol_errors = 0

    @property
    def name(self) -> str:
        return self.kind.value

    def __repr__(self) -> str:
        return f"<{type(self).__name__} state={self.state.value}>"

    # -------------------------
    # LIFECYCLE
    # -------------------------

    async def open(self, audio_format: AudioFormat | None = None) -> None:
        if self.state is not SessionState.IDLE:
            raise ConnectError(f"{self.name} session already used", provider=self.name)
        if audio_format is not None:
            self.audio_format = audio_format

        if not self.config.has_key:
            error = AuthError(f"No API key configured for {self.name}", provider=self.name)
            self._fail(error)
            raise error

        self._transition(SessionState.CONNECTING)
        try:
            await self._connect()
        except ProviderError as exc:
            self._fail(exc)
            await self._release()
            raise
        except asyncio.CancelledError:
            self._fail(ConnectError("open cancelled", provider=self.name))
            await self._release()
            raise
        except Exception as exc:
            error = ConnectError(str(exc) or type(exc).__name__, provider=self.name)
            self._fail(error)
            await self._release()
            raise error from exc

        if self.state is SessionState.CONNECTING:
            self._transition(SessionState.STREAMING)
            logger.info("%s Streaming | language=%s", self.log_prefix, self.language)

    async def push_audio(self, data: bytes) -> bool:
        """
        Returns True when the bytes were handed to the transport.
        """
        if self.state is not SessionState.STREAMING or not data:
            return False
        try:
            await self._send_audio(bytes(data))
        except ProviderError as exc:
            self._fail(exc)
            return False
        except Exception as exc:
            self._fail(TransportError(f"audio send failed: {exc}", provider=self.name))
            return False
        return True

    async def close(self, graceful: bool = True) -> None:
        if self.state.is_terminal:
            await self._release()
            return

        if self.state is SessionState.IDLE:
            self._transition(SessionState.CLOSED)
            self._end()
            return

        was_streaming = self.state is SessionState.STREAMING
        self._transition(SessionState.DRAINING)
        try:
            if graceful and was_streaming:
                await self._drain()
        except Exception as exc:
            logger.warning("%s Drain failed: %s", self.log_prefix, exc)
        finally:
            await self._release()
            if not self.state.is_terminal:
                self._transition(SessionState.CLOSED)
            self._end()

    async def events(self) -> AsyncIterator[TranscriptEvent]:
        """
        Yields decoded events until the session is closed or errored.
        """
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    # -------------------------
    # VARIANT HOOKS
    # -------------------------

    async def _connect(self) -> None:
        raise NotImplementedError

    async def _send_audio(self, data: bytes) -> None:
        raise NotImplementedError

    async def _drain(self) -> None:
        return

    async def _release(self) -> None:
        return

    # -------------------------
    # HELPERS
    # -------------------------

    def _transition(self, new_state: SessionState) -> None:
        if self.state is new_state:
            return
        logger.debug("%s %s -> %s", self.log_prefix, self.state.value, new_state.value)
        self.state = new_state

    def _emit(self, event: TranscriptEvent) -> None:
        if self._ended or self.state.is_terminal:
            return
        self._events.put_nowait(event)

    def _end(self) -> None:
        if not self._ended:
            self._ended = True
            self._events.put_nowait(None)

    def _fail(self, error: ProviderError) -> None:
        if self.state.is_terminal:
            return
        if error.provider is None:
            error.provider = self.name
        logger.error("%s Session failed: %s", self.log_prefix, error)
        self.error = error
        self._emit(TranscriptEvent.error(self.name, str(error)))
        self._transition(SessionState.ERRORED)
        self._end()

    def _protocol_error(self, message: str) -> None:
        self._protocol_errors += 1
        logger.warning(
            "%s Protocol error (%s/%s): %s",
            self.log_prefix,
            self._protocol_errors,
            MAX_CONSECUTIVE_PROTOCOL_ERRORS,
            message,
        )
        if self._protocol_errors >= MAX_CONSECUTIVE_PROTOCOL_ERRORS:
            self._fail(ProtocolError(f"repeated protocol errors: {message}", provider=self.name))

    def _message_ok(self) -> None:
        self._protocol_errors = 0

    def _note_language(self, language: str | None, confidence: float | None = None) -> None:
        if not language or language == self.detected_language:
            return
        self.detected_language = language
        if confidence is not None:
            logger.info("%s Detected language: %s (%.0f%%)", self.log_prefix, language, confidence * 100)
        else:
            logger.info("%s Detected language: %s", self.log_prefix, language)
        self._emit(
            TranscriptEvent(
                kind=EventKind.LANGUAGE_DETECTED,
                source=self.name,
                detected_language=language,
                confidence=confidence,
            )
        )
