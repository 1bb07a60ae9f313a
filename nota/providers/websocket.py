from __future__ import annotations

import asyncio
import json
import logging
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus, InvalidURI

from nota.audio.ports import AudioFormat
from nota.core.config import CLOSE_GRACE_PERIOD, CONNECT_TIMEOUT
from nota.core.state import SessionState
from nota.errors import AuthError, ConnectError, TransportError
from nota.providers.base import ProviderSession
from nota.schemas import ProviderConfig

logger = logging.getLogger("nota.providers.websocket")

# Close codes providers use for rejected credentials
AUTH_CLOSE_CODES = {1008, 4001, 4003}


class WebSocketSession(ProviderSession):
    """
    Shared transport for the streaming providers: handshake, receive loop,
    and graceful close through a provider control frame.
    """

    base_url = ""

    def __init__(
        self,
        config: ProviderConfig,
        language: str,
        audio_format: AudioFormat | None = None,
        connect=None,
        grace_period: float = CLOSE_GRACE_PERIOD,
    ):
        super().__init__(config, language, audio_format)
        self._connect_fn = connect or websockets.connect
        self.grace_period = grace_period
        self._ws = None
        self._receiver_task: asyncio.Task | None = None

    # -------------------------
    # VARIANT HOOKS
    # -------------------------

    def _query_params(self) -> dict:
        return {}

    def _headers(self) -> dict:
        return {}

    def _close_message(self) -> dict | None:
        return None

    def _handle_message(self, data: dict) -> None:
        raise NotImplementedError

    async def _on_connected(self) -> None:
        return

    async def _stop_timers(self) -> None:
        return

    # -------------------------
    # TRANSPORT
    # -------------------------

    def build_url(self) -> str:
        params = self._query_params()
        if not params:
            return self.base_url
        return f"{self.base_url}?{urlencode(params)}"

    async def _connect(self) -> None:
        url = self.build_url()
        logger.info("%s Connecting | url=%s", self.log_prefix, url)
        try:
            self._ws = await self._connect_fn(
                url,
                additional_headers=self._headers(),
                open_timeout=CONNECT_TIMEOUT,
                max_size=None,
            )
        except InvalidStatus as exc:
            status = getattr(exc.response, "status_code", None)
            if status in (401, 403):
                raise AuthError(f"handshake rejected with HTTP {status}", provider=self.name) from exc
            raise ConnectError(f"handshake failed with HTTP {status}", provider=self.name) from exc
        except (InvalidHandshake, InvalidURI) as exc:
            raise ConnectError(f"handshake failed: {exc}", provider=self.name) from exc
        except (OSError, asyncio.TimeoutError) as exc:
            raise ConnectError(f"connect failed: {exc}", provider=self.name) from exc

        self._receiver_task = asyncio.create_task(self._receive_loop())
        await self._on_connected()

    async def _send_audio(self, data: bytes) -> None:
        await self._ws.send(data)

    async def _send_json(self, payload: dict) -> None:
        await self._ws.send(json.dumps(payload))

    async def _receive_loop(self) -> None:
        try:
            async for message in self._ws:
                self._handle_raw(message)
                if self.state.is_terminal:
                    return
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as exc:
            code = getattr(exc.rcvd, "code", None)
            if self.state is SessionState.DRAINING or self.state.is_terminal:
                return
            if code in AUTH_CLOSE_CODES:
                self._fail(AuthError(f"closed by provider (code={code})", provider=self.name))
            else:
                self._fail(TransportError(f"connection dropped (code={code})", provider=self.name))
            return
        except Exception as exc:
            if not self.state.is_terminal:
                self._fail(TransportError(f"receive failed: {exc}", provider=self.name))
            return

        if self.state in (SessionState.CONNECTING, SessionState.STREAMING):
            self._fail(TransportError("connection closed by provider", provider=self.name))

    def _handle_raw(self, message) -> None:
        if isinstance(message, (bytes, bytearray)):
            try:
                message = bytes(message).decode("utf-8")
            except UnicodeDecodeError:
                self._protocol_error("binary frame is not utf-8")
                return
        try:
            data = json.loads(message)
        except (TypeError, ValueError):
            self._protocol_error(f"invalid JSON frame: {str(message)[:80]}")
            return
        if not isinstance(data, dict):
            self._protocol_error("JSON frame is not an object")
            return
        self._handle_message(data)

    async def _drain(self) -> None:
        await self._stop_timers()
        control = self._close_message()
        if control is not None and self._ws is not None:
            try:
                await self._send_json(control)
            except Exception as exc:
                logger.warning("%s Failed to send close control: %s", self.log_prefix, exc)
                return
        if self._receiver_task is not None and not self._receiver_task.done():
            await asyncio.wait({self._receiver_task}, timeout=self.grace_period)

    async def _release(self) -> None:
        await self._stop_timers()
        if self._ws is not None:
            ws, self._ws = self._ws, None
            try:
                await ws.close()
            except Exception as exc:
                logger.debug("%s close() ignored during cleanup: %s", self.log_prefix, exc)
        task, self._receiver_task = self._receiver_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
