from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class AudioFormat:
    """
    Raw capture format. Streaming providers expect little-endian PCM16.
    """
    sample_rate: int = 16000
    channels: int = 1
    sample_width: int = 2
    encoding: str = "linear16"

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.channels * self.sample_width


@dataclass(frozen=True)
class AudioDevice:
    id: str
    name: str
    is_default: bool = False


class AudioSource(Protocol):
    """
    Capture runs on its own thread. The core only reads by absolute offset.
    """

    def start_capture(self, device_id: str = "default") -> None:
        ...

    def stop_capture(self) -> None:
        ...

    def capture_since(self, offset: int) -> bytes:
        ...

    @property
    def captured_bytes(self) -> int:
        ...

    @property
    def earliest_offset(self) -> int:
        """Oldest offset still readable."""
        ...


class PermissionProvider(Protocol):
    async def request_microphone_permission(self) -> bool:
        ...


class AudioDeviceProvider(Protocol):
    def list_input_devices(self) -> list[AudioDevice]:
        ...
