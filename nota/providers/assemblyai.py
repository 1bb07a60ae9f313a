import base64
import logging

from nota.errors import TransportError
from nota.providers.websocket import WebSocketSession
from nota.schemas import ProviderKind
from nota.transcript.models import EventKind, TranscriptEvent

logger = logging.getLogger("nota.providers.assemblyai")

# Languages the multilingual streaming model handles
ASSEMBLYAI_LANGUAGES = frozenset({"en", "es", "fr", "de", "it", "pt"})


class AssemblyAISession(WebSocketSession):
    """
    Turn-based streaming. Audio goes out base64-encoded inside JSON text
    frames; a Turn is committed only once the provider ends it.
    With format_turns on, the provider sends every finished turn twice
    (raw, then formatted); only the formatted copy is committed.
    """

    kind = ProviderKind.ASSEMBLYAI
    log_prefix = "[AAI]"
    base_url = "wss://streaming.assemblyai.com/v3/ws"

    def __init__(self, *args, format_turns: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.format_turns = format_turns
        self.session_id: str | None = None

    def _query_params(self) -> dict:
        return {
            "sample_rate": self.audio_format.sample_rate,
            "encoding": "pcm_s16le",
            "format_turns": "true" if self.format_turns else "false",
            "speech_model": "universal-streaming-multilingual",
            "language_detection": "true",
        }

    def _headers(self) -> dict:
        return {"Authorization": str(self.config.api_key or "")}

    def _close_message(self) -> dict:
        return {"type": "Terminate"}

    async def _send_audio(self, data: bytes) -> None:
        await self._send_json({"audio_data": base64.b64encode(data).decode("ascii")})

    # -------------------------
    # DECODING
    # -------------------------

    def _handle_message(self, data: dict) -> None:
        message_type = str(data.get("type") or "")

        if message_type == "Begin":
            self._message_ok()
            self.session_id = str(data.get("id") or "") or None
            logger.info("[AAI] Session started: %s", self.session_id)
            self._emit(TranscriptEvent(kind=EventKind.SESSION_META, source=self.name, meta={"session_id": self.session_id}))
        elif message_type == "Turn":
            self._message_ok()
            self._handle_turn(data)
        elif message_type == "Termination":
            self._message_ok()
            duration = data.get("audio_duration_seconds")
            logger.info("[AAI] Session terminated: %ss processed", duration)
            self._emit(
                TranscriptEvent(kind=EventKind.SESSION_META, source=self.name, meta={"terminated": True, "audio_duration_seconds": duration})
            )
        elif message_type == "Error":
            message = str(data.get("error") or "provider error")
            self._fail(TransportError(message, provider=self.name))
        else:
            self._protocol_error(f"unknown message type: {message_type or '<missing>'}")

    def _handle_turn(self, data: dict) -> None:
        language = data.get("language_code")
        if language:
            self._note_language(str(language), data.get("language_confidence"))

        transcript = str(data.get("transcript") or "").strip()
        if not transcript:
            return

        end_of_turn = bool(data.get("end_of_turn", False))
        formatted = bool(data.get("turn_is_formatted", False))
        turn_order = data.get("turn_order")

        if end_of_turn and (formatted or not self.format_turns):
            logger.debug("[AAI] final | turn=%s formatted=%s chars=%s", turn_order, formatted, len(transcript))
            self._emit(
                TranscriptEvent.final(
                    self.name,
                    transcript,
                    confidence=data.get("end_of_turn_confidence"),
                    audio_end=_turn_end(data),
                    meta={"turn_order": turn_order},
                )
            )
        else:
            self._emit(TranscriptEvent.partial(self.name, transcript, meta={"turn_order": turn_order}))


def _turn_end(data: dict):
    # Word timestamps are milliseconds since the session's first audio
    words = data.get("words")
    if not isinstance(words, list) or not words or not isinstance(words[-1], dict):
        return None
    try:
        return float(words[-1]["end"]) / 1000.0
    except (KeyError, TypeError, ValueError):
        return None
