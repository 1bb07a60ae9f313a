import asyncio
import logging

from nota.core.config import DEEPGRAM_MODEL, KEEPALIVE_INTERVAL
from nota.core.state import SessionState
from nota.languages import primary_code
from nota.providers.websocket import WebSocketSession
from nota.schemas import ProviderKind
from nota.transcript.models import EventKind, TranscriptEvent

logger = logging.getLogger("nota.providers.deepgram")

DEEPGRAM_ENDPOINTING_MS = 300


class DeepgramSession(WebSocketSession):
    """
    Continuous streaming: binary PCM frames out, `Results` messages in.
    A KeepAlive control frame goes out every few seconds regardless of
    audio so silent stretches do not trip the idle timeout.
    """

    kind = ProviderKind.DEEPGRAM
    log_prefix = "[DG]"
    base_url = "wss://api.deepgram.com/v1/listen"

    def __init__(self, *args, keepalive_interval: float = KEEPALIVE_INTERVAL, model: str = DEEPGRAM_MODEL, **kwargs):
        super().__init__(*args, **kwargs)
        self.keepalive_interval = keepalive_interval
        self.model = model
        self.keepalives_sent = 0
        self._keepalive_task: asyncio.Task | None = None

    def _query_params(self) -> dict:
        auto = str(self.config.language_hint or "auto").lower() == "auto"
        params = {
            "encoding": self.audio_format.encoding,
            "sample_rate": self.audio_format.sample_rate,
            "channels": self.audio_format.channels,
            "model": self.model,
            "language": "multi" if auto else primary_code(self.language),
            "punctuate": "true",
            "interim_results": "true",
            "endpointing": DEEPGRAM_ENDPOINTING_MS,
        }
        if auto:
            params["detect_language"] = "true"
        return params

    def _headers(self) -> dict:
        return {"Authorization": f"Token {self.config.api_key}"}

    def _close_message(self) -> dict:
        return {"type": "CloseStream"}

    async def _on_connected(self) -> None:
        self._keepalive_task = asyncio.create_task(self._keepalive_loop())

    async def _stop_timers(self) -> None:
        task, self._keepalive_task = self._keepalive_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _keepalive_loop(self) -> None:
        try:
            while not self.state.is_terminal and self.state is not SessionState.DRAINING:
                await asyncio.sleep(self.keepalive_interval)
                if self.state is not SessionState.STREAMING or self._ws is None:
                    continue
                try:
                    await self._send_json({"type": "KeepAlive"})
                    self.keepalives_sent += 1
                except Exception as exc:
                    logger.warning("[DG] Failed to send KeepAlive: %s", exc)
        finally:
            logger.debug("[DG] KeepAlive loop terminated")

    # -------------------------
    # DECODING
    # -------------------------

    def _handle_message(self, data: dict) -> None:
        message_type = str(data.get("type") or "")

        if message_type == "Results":
            self._handle_results(data)
        elif message_type == "Metadata":
            self._message_ok()
            request_id = data.get("request_id")
            logger.info("[DG] Connection established: %s", request_id)
            self._emit(TranscriptEvent(kind=EventKind.SESSION_META, source=self.name, meta={"request_id": request_id}))
        elif message_type == "UtteranceEnd":
            self._message_ok()
            self._emit(
                TranscriptEvent(kind=EventKind.SESSION_META, source=self.name, is_end_of_turn=True, meta={"utterance_end": True})
            )
        else:
            self._protocol_error(f"unknown message type: {message_type or '<missing>'}")

    def _handle_results(self, data: dict) -> None:
        channel = data.get("channel")
        alternatives = channel.get("alternatives") if isinstance(channel, dict) else None
        if not isinstance(alternatives, list) or not alternatives or not isinstance(alternatives[0], dict):
            self._protocol_error("Results without channel.alternatives")
            return
        self._message_ok()

        alternative = alternatives[0]
        detected = alternative.get("detected_language") or channel.get("detected_language")
        if detected:
            self._note_language(str(detected), alternative.get("language_confidence"))

        transcript = str(alternative.get("transcript") or "").strip()
        if not transcript:
            return

        is_final = bool(data.get("is_final", False))
        speech_final = bool(data.get("speech_final", False))
        confidence = alternative.get("confidence")

        if is_final or speech_final:
            logger.debug("[DG] final | speech_final=%s chars=%s", speech_final, len(transcript))
            self._emit(
                TranscriptEvent(
                    kind=EventKind.FINAL,
                    source=self.name,
                    text=transcript,
                    is_end_of_turn=speech_final,
                    confidence=confidence,
                    audio_end=_result_end(data),
                )
            )
        else:
            self._emit(TranscriptEvent.partial(self.name, transcript, confidence=confidence))


def _result_end(data: dict) -> float | None:
    try:
        return float(data["start"]) + float(data["duration"])
    except (KeyError, TypeError, ValueError):
        return None
