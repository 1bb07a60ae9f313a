import asyncio
import io
import logging
import tempfile
import wave

import httpx
import openai
from openai import AsyncOpenAI

from nota.core.config import RPC_TIMEOUT, WHISPER_INTERVAL, WHISPER_MODEL
from nota.core.state import SessionState
from nota.errors import AuthError, TransportError
from nota.languages import primary_code
from nota.providers.base import ProviderSession
from nota.schemas import ProviderKind
from nota.transcript.models import TranscriptEvent

logger = logging.getLogger("nota.providers.whisper")

PROMPT_CONTEXT_CHARS = 200
MIN_UPLOAD_SECONDS = 0.5
FLUSH_TIMEOUT = 10.0


class WhisperSession(ProviderSession):
    """
    Chunked-upload fallback. Audio accumulates in a rolling temp file and
    the whole file is uploaded on a timer. Each response is one FINAL
    event; the uploaded audio is then rolled out of the file.
    """

    kind = ProviderKind.WHISPER
    log_prefix = "[WHISPER]"

    def __init__(
        self,
        *args,
        client: AsyncOpenAI | None = None,
        interval: float = WHISPER_INTERVAL,
        model: str = WHISPER_MODEL,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self._client = client
        self.interval = interval
        self.model = model
        self.uploads = 0
        self._uploaded_bytes = 0
        self._rolling = None
        self._rolling_bytes = 0
        self._previous_text = ""
        self._upload_task: asyncio.Task | None = None
        self._upload_lock = asyncio.Lock()

    @property
    def min_upload_bytes(self) -> int:
        return int(self.audio_format.bytes_per_second * MIN_UPLOAD_SECONDS)

    @property
    def buffered_bytes(self) -> int:
        return self._rolling_bytes

    # -------------------------
    # LIFECYCLE HOOKS
    # -------------------------

    async def _connect(self) -> None:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                timeout=httpx.Timeout(RPC_TIMEOUT, connect=5.0),
                max_retries=0,
            )
        self._rolling = tempfile.TemporaryFile(prefix="nota-", suffix=".pcm")
        self._rolling_bytes = 0
        self._upload_task = asyncio.create_task(self._upload_loop())

    async def _send_audio(self, data: bytes) -> None:
        self._rolling.seek(0, io.SEEK_END)
        self._rolling.write(data)
        self._rolling_bytes += len(data)

    async def _drain(self) -> None:
        await self._cancel_upload_loop()
        try:
            await asyncio.wait_for(self.upload_once(), timeout=FLUSH_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("[WHISPER] Final upload timed out")

    async def _release(self) -> None:
        await self._cancel_upload_loop()
        if self._rolling is not None:
            rolling, self._rolling = self._rolling, None
            rolling.close()
        self._rolling_bytes = 0

    async def _cancel_upload_loop(self) -> None:
        task, self._upload_task = self._upload_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _upload_loop(self) -> None:
        while not self.state.is_terminal and self.state is not SessionState.DRAINING:
            await asyncio.sleep(self.interval)
            if self.state is not SessionState.STREAMING:
                continue
            try:
                await self.upload_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._fail(TransportError(f"upload loop failed: {exc}", provider=self.name))

    # -------------------------
    # UPLOAD
    # -------------------------

    def _wav_payload(self, size: int) -> bytes:
        self._rolling.seek(0)
        pcm = self._rolling.read(size)
        out = io.BytesIO()
        with wave.open(out, "wb") as wav:
            wav.setnchannels(self.audio_format.channels)
            wav.setsampwidth(self.audio_format.sample_width)
            wav.setframerate(self.audio_format.sample_rate)
            wav.writeframes(pcm)
        return out.getvalue()

    def _roll(self, uploaded: int) -> None:
        self._rolling.seek(uploaded)
        remainder = self._rolling.read()
        self._rolling.seek(0)
        self._rolling.truncate()
        self._rolling.write(remainder)
        self._rolling_bytes = len(remainder)

    def _request_kwargs(self, payload: bytes) -> dict:
        kwargs = {
            "model": self.model,
            "file": ("audio.wav", payload, "audio/wav"),
        }
        if str(self.config.language_hint or "auto").lower() != "auto":
            kwargs["language"] = primary_code(self.language)
        if self._previous_text:
            kwargs["prompt"] = self._previous_text[-PROMPT_CONTEXT_CHARS:]
        return kwargs

    async def upload_once(self) -> bool:
        """
        Upload everything buffered so far. Returns True when a response
        was received and the buffer rolled.
        """
        async with self._upload_lock:
            if self._rolling is None or self._rolling_bytes < self.min_upload_bytes:
                return False

            size = self._rolling_bytes
            try:
                payload = self._wav_payload(size)
            except OSError as exc:
                self._fail(TransportError(f"cannot read buffered audio: {exc}", provider=self.name))
                return False
            logger.info("[WHISPER] Uploading %s bytes of audio", size)

            try:
                result = await self._client.audio.transcriptions.create(**self._request_kwargs(payload))
            except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
                self._fail(AuthError(f"upload rejected: {exc}", provider=self.name))
                return False
            except openai.APIStatusError as exc:
                self._fail(TransportError(f"upload failed: {exc.message}", provider=self.name))
                return False
            except (openai.APIConnectionError, httpx.HTTPError) as exc:
                self._fail(TransportError(f"upload failed: {exc}", provider=self.name))
                return False
            except Exception as exc:
                self._fail(TransportError(f"upload failed: {type(exc).__name__}: {exc}", provider=self.name))
                return False

            self.uploads += 1
            self._uploaded_bytes += size
            if self._rolling is not None:
                self._roll(size)

            text = str(getattr(result, "text", "") or "").strip()
            if text:
                self._previous_text = text
                self._emit(
                    TranscriptEvent.final(
                        self.name,
                        text,
                        audio_end=self._uploaded_bytes / self.audio_format.bytes_per_second,
                    )
                )
            return True
