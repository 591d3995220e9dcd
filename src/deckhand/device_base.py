"""
Base classes for device transports.

DeviceTransport is the seam between a DeviceSession and the hardware
library: enumerate, connect, read, write image, set brightness, close.
The session only depends on these calls succeeding or raising, so tests
can inject a fake transport and run without a device attached.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from PIL import Image

from .errors import DeviceRejected
from .events import ButtonEvent


@dataclass(frozen=True)
class DeviceCandidate:
    """A visible, not yet opened device as returned by enumerate()."""

    kind: str
    identifier: str
    device: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class DeviceDescriptor:
    """Identity of an opened device, captured once at connect time."""

    kind: str
    serial_number: str
    firmware_version: str

    def __str__(self) -> str:
        return (f"{self.kind} (serial {self.serial_number}, "
                f"firmware {self.firmware_version})")


@dataclass(frozen=True)
class ImageFormat:
    """Native image layout of one display area.

    Mirrors the dicts the hardware library reports: pixel size, codec
    name, rotation in degrees and (horizontal, vertical) flips.
    """

    size: tuple[int, int]
    format: str = "JPEG"
    rotation: int = 0
    flip: tuple[bool, bool] = (False, False)

    @property
    def width(self) -> int:
        return self.size[0]

    @property
    def height(self) -> int:
        return self.size[1]


class DeviceTransport(ABC):
    """Base for all hardware transports.

    Subclasses:
        StreamDeckTransport -- Elgato decks via the ``streamdeck`` library

    ``handle`` values are opaque to callers; only the transport that
    returned them from connect() may interpret them.
    """

    @abstractmethod
    def enumerate(self) -> List[DeviceCandidate]:
        """List visible devices in discovery order."""
        ...

    @abstractmethod
    def connect(self, candidate: DeviceCandidate) -> Any:
        """Open an exclusive connection and return a handle."""
        ...

    @abstractmethod
    def describe(self, handle: Any) -> DeviceDescriptor:
        """Read kind, serial number and firmware version."""
        ...

    @abstractmethod
    def read(self, handle: Any, timeout: float) -> Sequence[ButtonEvent]:
        """Block up to ``timeout`` seconds for a batch of events.

        Returns an empty sequence on timeout.  Raises DeviceDisconnected
        when the device is gone.
        """
        ...

    @abstractmethod
    def image_format(self, handle: Any) -> Optional[ImageFormat]:
        """Format of the LCD background area, None if there is none."""
        ...

    @abstractmethod
    def scale_background(self, handle: Any, image: Image.Image) -> Image.Image:
        """Fit an image to the LCD background, keeping aspect.

        Raises DeviceRejected when the device has no LCD background.
        """
        ...

    @abstractmethod
    def write_image(self, handle: Any, image: Image.Image) -> None:
        """Write a background image.  Raises DeviceRejected."""
        ...

    @abstractmethod
    def set_brightness(self, handle: Any, percent: int) -> None:
        """Set backlight brightness.  Raises DeviceRejected."""
        ...

    @abstractmethod
    def close(self, handle: Any) -> None:
        """Release the device."""
        ...

    # Buffered key images.  Transports without key displays keep the
    # defaults: nothing is ever pending.

    def set_button_image(self, handle: Any, index: int, image: Image.Image) -> None:
        """Queue a key image until the next flush()."""
        raise DeviceRejected("device has no key displays")

    def is_updated(self, handle: Any) -> bool:
        """Whether buffered changes are waiting for flush()."""
        return False

    def flush(self, handle: Any) -> None:
        """Send buffered changes."""
