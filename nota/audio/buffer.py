from __future__ import annotations

import logging
from threading import Lock

from nota.audio.ports import AudioFormat

logger = logging.getLogger("nota.audio.buffer")


class CaptureBuffer:
    """
    Offset-addressed capture buffer.

    A platform capture thread calls write(); the core reads with
    capture_since(offset) where offsets count bytes since start_capture().
    Only the most recent `retain_seconds` of audio stay in memory.
    """

    def __init__(self, audio_format: AudioFormat | None = None, retain_seconds: float = 120.0):
        self._lock = Lock()
        self.audio_format = audio_format or AudioFormat()
        self._retain_bytes = max(1, int(retain_seconds * self.audio_format.bytes_per_second))
        self._data = bytearray()
        self._base_offset = 0
        self._capturing = False
        self.device_id = "default"

    def start_capture(self, device_id: str = "default") -> None:
        with self._lock:
            self._data = bytearray()
            self._base_offset = 0
            self._capturing = True
            self.device_id = str(device_id or "default")
        logger.info("Capture started | device=%s", self.device_id)

    def stop_capture(self) -> None:
        with self._lock:
            self._capturing = False
        logger.info("Capture stopped | bytes=%s", self.captured_bytes)

    @property
    def is_capturing(self) -> bool:
        with self._lock:
            return self._capturing

    def write(self, chunk: bytes) -> None:
        if not chunk:
            return
        with self._lock:
            if not self._capturing:
                return
            self._data.extend(chunk)
            overflow = len(self._data) - self._retain_bytes
            if overflow > 0:
                del self._data[:overflow]
                self._base_offset += overflow

    def capture_since(self, offset: int) -> bytes:
        with self._lock:
            start = max(0, int(offset) - self._base_offset)
            if start >= len(self._data):
                return b""
            if int(offset) < self._base_offset:
                logger.warning(
                    "Requested offset %s already trimmed; resuming at %s",
                    offset,
                    self._base_offset,
                )
            return bytes(self._data[start:])

    @property
    def captured_bytes(self) -> int:
        with self._lock:
            return self._base_offset + len(self._data)

    @property
    def earliest_offset(self) -> int:
        with self._lock:
            return self._base_offset
