from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from nota.ai_reasoning.llm import InsightGenerator
from nota.audio.ports import AudioFormat, AudioSource, PermissionProvider
from nota.core.config import AUDIO_PUSH_INTERVAL, CLOSE_GRACE_PERIOD, FAILOVER_REPLAY_SECONDS, load_settings
from nota.core.logger import log_event
from nota.core.state import RecordingState, SessionState
from nota.errors import (
    AllProvidersFailedError,
    AlreadyRecordingError,
    NoProviderConfiguredError,
    PermissionDeniedError,
    PersistenceError,
    ProviderError,
    RecordingError,
)
from nota.providers import ProviderSelector, ProviderSession, build_session
from nota.schemas import ProviderConfig, ProviderKind, RecordingSettings, Session
from nota.session.bus import SnapshotBus, SnapshotHandler
from nota.session.recorder import SessionRecorder
from nota.session.scheduler import Analyzer, SummaryScheduler
from nota.transcript import rules
from nota.transcript.models import EventKind, TranscriptEvent, TranscriptSnapshot
from nota.transcript.state import TranscriptState

logger = logging.getLogger("nota.session.orchestrator")

PROVIDER_LABELS = {
    ProviderKind.DEEPGRAM: "Deepgram",
    ProviderKind.ASSEMBLYAI: "AssemblyAI",
    ProviderKind.WHISPER: "Whisper",
}

# Extra time after a graceful close for already-queued events to be applied
CONSUMER_DRAIN_TIMEOUT = CLOSE_GRACE_PERIOD + 1.5


class TranscriptionOrchestrator:
    """
    Owns one recording at a time: picks the provider chain, keeps one live
    ProviderSession, falls back along the chain when it fails, and
    reconciles its events into the TranscriptState.

    Everything that touches the transcript runs on the event loop that
    called start(); provider receive loops and timers are tasks on it.
    """

    def __init__(
        self,
        audio: AudioSource,
        permissions: PermissionProvider,
        recorder: SessionRecorder | None = None,
        analyzer: Analyzer | None = None,
        selector: ProviderSelector | None = None,
        session_factory: Callable[..., ProviderSession] = build_session,
        audio_format: AudioFormat | None = None,
        push_interval: float = AUDIO_PUSH_INTERVAL,
        replay_seconds: float = FAILOVER_REPLAY_SECONDS,
        scheduler: SummaryScheduler | None = None,
    ):
        self.audio = audio
        self.permissions = permissions
        self.recorder = recorder
        self.selector = selector or ProviderSelector()
        self.session_factory = session_factory
        self.audio_format = audio_format or AudioFormat()
        self.push_interval = push_interval
        self.replay_bytes = int(replay_seconds * self.audio_format.bytes_per_second)

        self.state = RecordingState.STOPPED
        self.transcript = TranscriptState()
        self.bus = SnapshotBus()
        self.scheduler = scheduler or SummaryScheduler(self.transcript, self.publish, analyzer)
        self._build_analyzer = analyzer is None and scheduler is None
        self.connection_status = "Ready"

        self.settings: RecordingSettings | None = None
        self.chain: list[ProviderConfig] = []
        self.session: ProviderSession | None = None
        self.sessions_opened: list[ProviderSession] = []
        self.recording_id: uuid.UUID | None = None
        self.started_at: datetime | None = None
        self.language: str | None = None
        self.detected_language: str | None = None
        self.last_session: Session | None = None
        self.last_error: RecordingError | None = None

        self._chain_index = 0
        self._offset = 0
        self._final_offset = 0
        self._session_base: int | None = None
        self._seed: Session | None = None
        self._pump_task: asyncio.Task | None = None
        self._consumer_task: asyncio.Task | None = None

    # -------------------------
    # OBSERVATION
    # -------------------------

    def subscribe(self, handler: SnapshotHandler) -> Callable[[], None]:
        return self.bus.subscribe(handler)

    def snapshot(self) -> TranscriptSnapshot:
        return TranscriptSnapshot(
            committed=self.transcript.committed,
            interim=self.transcript.interim,
            connection_status=self.connection_status,
            live_insight=self.scheduler.live_insight,
            provider=self.session.name if self.session is not None else None,
        )

    async def publish(self) -> None:
        await self.bus.publish(self.snapshot())

    async def _set_status(self, status: str) -> None:
        self.connection_status = status
        await self.publish()

    def _log(self, event: str, **fields) -> None:
        fields.setdefault("provider", self.session.name if self.session is not None else None)
        log_event("orchestrator", event, str(self.recording_id), state=self.state, **fields)

    @property
    def active_provider(self) -> ProviderKind | None:
        return self.session.kind if self.session is not None else None

    @property
    def capture_offset(self) -> int:
        return self._offset

    def continue_from(self, session: Session) -> None:
        """
        Seed the next recording with a previous session's transcript.
        """
        if self.state is not RecordingState.STOPPED:
            raise AlreadyRecordingError("cannot continue while recording")
        self._seed = session
        logger.info("Continuing from previous session: %s chars", len(session.committed_transcript))

    # -------------------------
    # START
    # -------------------------

    async def start(
        self,
        settings: RecordingSettings | None = None,
        explicit_preference: ProviderKind | None = None,
    ) -> None:
        if self.state is not RecordingState.STOPPED:
            raise AlreadyRecordingError(f"recorder is {self.state.value}")

        settings = settings or load_settings()
        chain = self.selector.select_chain(settings, explicit_preference)
        if not chain:
            self.last_error = NoProviderConfiguredError("no provider has an API key")
            await self._set_status(NoProviderConfiguredError.user_message)
            raise self.last_error

        self.state = RecordingState.STARTING
        self.settings = settings
        self.chain = chain
        self._chain_index = 0
        self.sessions_opened = []
        self.recording_id = uuid.uuid4()
        self.started_at = datetime.now(timezone.utc)
        self.language = self.selector.resolve_language(settings)
        self.detected_language = None
        self.last_error = None
        self._reset_transcript()
        if self._build_analyzer:
            self.scheduler.analyzer = InsightGenerator(api_key=settings.openai_api_key) if settings.openai_api_key else None

        self._log("start_requested", language=self.language, chain=[c.kind.value for c in chain])
        await self._set_status("Requesting permissions...")

        try:
            granted = bool(await self.permissions.request_microphone_permission())
        except Exception as exc:
            logger.warning("Microphone permission request failed: %s", exc)
            granted = False

        if not granted:
            self.state = RecordingState.STOPPED
            self.last_error = PermissionDeniedError("microphone permission denied")
            self._log("permission_denied")
            await self._set_status(PermissionDeniedError.user_message)
            raise self.last_error

        self.audio.start_capture(settings.input_device)
        self._offset = self._final_offset = self.audio.earliest_offset

        session = await self._open_next()
        if session is None:
            self.audio.stop_capture()
            self.state = RecordingState.STOPPED
            self.last_error = AllProvidersFailedError("every provider in the chain failed to open")
            self._log("chain_exhausted")
            await self._set_status(AllProvidersFailedError.user_message)
            raise self.last_error

        self._activate(session)
        self.state = RecordingState.ACTIVE
        self._pump_task = asyncio.create_task(self._pump_loop())
        self.scheduler.start()
        if self._seed is not None:
            self.scheduler.resume(self._seed.insights_text, len(self.transcript.committed))
            self._seed = None
        self._log("active", provider=session.name)
        await self._set_status(f"Recording ({PROVIDER_LABELS[session.kind]})...")

    def _reset_transcript(self) -> None:
        self.transcript = TranscriptState()
        self.scheduler.transcript = self.transcript
        if self._seed is not None:
            self.transcript.seed(self._seed.committed_transcript)

    async def _open_next(self) -> ProviderSession | None:
        while self._chain_index < len(self.chain):
            config = self.chain[self._chain_index]
            self._chain_index += 1
            session = self.session_factory(config, self.language, self.audio_format)
            self.sessions_opened.append(session)
            try:
                await session.open(self.audio_format)
            except ProviderError as exc:
                logger.warning("Provider %s unavailable: %s", config.kind.value, exc)
                self._log("provider_open_failed", provider=config.kind.value, error=type(exc).__name__)
                continue
            return session
        return None

    def _activate(self, session: ProviderSession) -> None:
        self.session = session
        self._session_base = None
        self._consumer_task = asyncio.create_task(self._consume(session))

    # -------------------------
    # ACTIVE
    # -------------------------

    async def _consume(self, session: ProviderSession) -> None:
        async for event in session.events():
            self._apply_event(session, event)

        if session is self.session and self.state is RecordingState.ACTIVE and session.state is SessionState.ERRORED:
            await self._failover(session)

    def _apply_event(self, session: ProviderSession, event: TranscriptEvent) -> None:
        if session is not self.session:
            return

        if event.kind is EventKind.PARTIAL:
            self.transcript.apply_partial(event.text or "")
        elif event.kind is EventKind.FINAL:
            text = str(event.text or "").strip()
            if rules.is_phantom(text):
                logger.info("Dropped phantom transcript (%s chars) from %s", len(text), event.source)
                self.transcript.discard_interim()
                return
            self.transcript.commit(text)
            self._final_offset = self._finalized_offset(event)
        elif event.kind is EventKind.LANGUAGE_DETECTED:
            self.detected_language = event.detected_language
        elif event.kind is EventKind.ERROR:
            logger.warning("Provider %s reported: %s", event.source, event.error_message)
        elif event.kind is EventKind.SESSION_META:
            logger.debug("Provider %s meta: %s", event.source, event.meta)

    def _finalized_offset(self, event: TranscriptEvent) -> int:
        """
        Capture offset where the audio behind a Final ends, from the
        provider's own timing. Without timing the replay floor stays put.
        """
        if event.audio_end is None or self._session_base is None:
            return self._final_offset
        frame = self.audio_format.sample_width * self.audio_format.channels
        covered = int(float(event.audio_end) * self.audio_format.bytes_per_second)
        end = self._session_base + covered - covered % frame
        return max(self._final_offset, min(end, self._offset))

    async def _pump_loop(self) -> None:
        while self.state is RecordingState.ACTIVE:
            try:
                await self._pump_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Audio pump failed: %s", exc)
            await asyncio.sleep(self.push_interval)

    async def _pump_once(self) -> int:
        session = self.session
        if session is None or session.state is not SessionState.STREAMING:
            return 0
        start = max(self._offset, self.audio.earliest_offset)
        data = self.audio.capture_since(start)
        if not data:
            return 0
        accepted = await session.push_audio(data)
        if accepted and session is self.session:
            if self._session_base is None:
                self._session_base = start
            self._offset = start + len(data)
            return len(data)
        return 0

    async def _failover(self, failed: ProviderSession) -> None:
        # Detach first so an in-flight pump cannot advance the offset.
        self.session = None
        self.transcript.discard_interim()
        self._offset = max(self._final_offset, self._offset - self.replay_bytes, self.audio.earliest_offset)

        error = failed.error
        logger.warning("Provider %s failed mid-stream: %s", failed.name, error)
        self._log(
            "failover",
            provider=failed.name,
            error=type(error).__name__ if error else None,
            replay_from=self._offset,
        )
        await failed.close(graceful=False)
        await self._set_status("Switching transcription provider...")

        replacement = await self._open_next()
        if self.state is not RecordingState.ACTIVE:
            if replacement is not None:
                await replacement.close(graceful=False)
            return
        if replacement is None:
            await self._abort(AllProvidersFailedError("fallback chain exhausted"))
            return

        self._activate(replacement)
        await self._set_status(f"Recording ({PROVIDER_LABELS[replacement.kind]})...")

    # -------------------------
    # STOP
    # -------------------------

    async def stop(self) -> Session | None:
        if self.state is not RecordingState.ACTIVE:
            return None

        self.state = RecordingState.STOPPING
        self._log("stop_requested")
        await self.scheduler.stop()
        await self._cancel_pump()

        session = self.session
        if session is not None and session.state is SessionState.STREAMING:
            try:
                await self._pump_once()
            except Exception as exc:
                logger.warning("Final audio push failed: %s", exc)
        if session is not None:
            await session.close(graceful=True)
        await self._finish_consumer()
        self.audio.stop_capture()

        committed = self.transcript.finalize(accept=lambda text: not rules.is_phantom(text))
        await self._set_status("Generating final analysis..." if committed else "Ready")
        insights = await self.scheduler.final_analysis(committed)

        record = self._build_record(committed, insights)
        status = "Ready"
        if committed:
            status = self._persist(record) or status

        self.session = None
        self.state = RecordingState.STOPPED
        self._log("stopped", transcript=committed, insight=insights)
        await self._set_status(status)
        return record

    async def _abort(self, error: RecordingError) -> None:
        self.state = RecordingState.STOPPING
        self.last_error = error
        self._log("aborted", error=type(error).__name__)
        await self.scheduler.stop()
        await self._cancel_pump()
        self.audio.stop_capture()

        committed = self.transcript.finalize(accept=lambda text: not rules.is_phantom(text))
        if committed:
            self._persist(self._build_record(committed, self.scheduler.live_insight))
        self.session = None
        self._consumer_task = None
        self.state = RecordingState.STOPPED
        await self._set_status(error.user_message)

    def _build_record(self, committed: str, insights: str) -> Session:
        record = Session(
            id=self.recording_id or uuid.uuid4(),
            start_time=self.started_at or datetime.now(timezone.utc),
            end_time=datetime.now(timezone.utc),
            committed_transcript=committed,
            insights_text=insights or "",
            language_used=self.detected_language or self.language or "en-US",
        )
        self.last_session = record
        return record

    def _persist(self, record: Session) -> str | None:
        if self.recorder is None:
            return None
        try:
            self.recorder.persist_session(record)
        except PersistenceError as exc:
            logger.error("Failed to persist session %s: %s", record.id, exc)
            return PersistenceError.user_message
        except Exception as exc:
            logger.exception("Session recorder crashed for %s: %s", record.id, exc)
            return PersistenceError.user_message
        return None

    async def _cancel_pump(self) -> None:
        task, self._pump_task = self._pump_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _finish_consumer(self) -> None:
        task, self._consumer_task = self._consumer_task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        done, _ = await asyncio.wait({task}, timeout=CONSUMER_DRAIN_TIMEOUT)
        if not done:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
