"""
DeviceSession -- the one open connection this process owns.

Lifecycle::

    UNOPENED --open()--> CONNECTED --shutdown()--> CLOSED

There is no way back from CLOSED.  A lost device ends the session; a
caller that wants to retry opens a new one.

Usage::

    with DeviceSession.open() as session:
        session.set_brightness(40)
        events = session.read_events(5.0)
"""

from __future__ import annotations

import enum
import logging
from typing import Any, List, Optional

from PIL import Image

from . import image_io
from .device_base import DeviceDescriptor, DeviceTransport, ImageFormat
from .errors import (
    DeviceConnectionError,
    DiscoveryError,
    InvalidInput,
    ReadTimeout,
    SessionClosed,
)
from .events import ButtonEvent

log = logging.getLogger(__name__)


class SessionState(enum.Enum):
    UNOPENED = "unopened"
    CONNECTED = "connected"
    CLOSED = "closed"


def default_transport() -> DeviceTransport:
    """The hardware transport used when none is injected."""
    from .device_streamdeck import StreamDeckTransport
    return StreamDeckTransport()


class DeviceSession:
    """Exclusive owner of one device handle."""

    def __init__(self, transport: DeviceTransport):
        self._transport = transport
        self._handle: Any = None
        self._descriptor: Optional[DeviceDescriptor] = None
        self.state = SessionState.UNOPENED

    @classmethod
    def open(cls, transport: Optional[DeviceTransport] = None) -> DeviceSession:
        """Discover the first visible device and connect to it.

        Raises:
            DiscoveryError: nothing to connect to.
            DeviceConnectionError: connect failed, or the device would
                not report its serial number and firmware version.
        """
        session = cls(transport or default_transport())
        session._connect()
        return session

    def _connect(self) -> None:
        if self.state is not SessionState.UNOPENED:
            raise SessionClosed(f"Session already {self.state.value}")

        try:
            candidates = self._transport.enumerate()
        except Exception as e:
            raise DiscoveryError(f"Unable to list devices: {e}") from e
        if not candidates:
            raise DiscoveryError("No device found")

        candidate = candidates[0]
        log.info("Found %s", candidate.kind)

        try:
            handle = self._transport.connect(candidate)
        except DeviceConnectionError:
            raise
        except Exception as e:
            raise DeviceConnectionError("Unable to connect to the device") from e

        try:
            descriptor = self._transport.describe(handle)
        except Exception as e:
            self._close_quietly(handle)
            if isinstance(e, DeviceConnectionError):
                raise
            raise DeviceConnectionError(f"Unable to identify {candidate.kind}: {e}") from e

        self._handle = handle
        self._descriptor = descriptor
        self.state = SessionState.CONNECTED
        log.info("Connected to %s, serial number %s and firmware version %s",
                 descriptor.kind, descriptor.serial_number, descriptor.firmware_version)

    def _close_quietly(self, handle: Any) -> None:
        try:
            self._transport.close(handle)
        except Exception:
            log.exception("Close after failed identify also failed")

    def _require_connected(self) -> Any:
        if self.state is not SessionState.CONNECTED:
            raise SessionClosed(f"Session is {self.state.value}")
        return self._handle

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def descriptor(self) -> DeviceDescriptor:
        if self._descriptor is None:
            raise SessionClosed("Session was never opened")
        return self._descriptor

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    def lcd_image_format(self) -> Optional[ImageFormat]:
        """Native format of the LCD background, None if the device has none."""
        return self._transport.image_format(self._require_connected())

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def read_events(self, timeout: float) -> List[ButtonEvent]:
        """Wait up to ``timeout`` seconds for the next batch of events.

        Raises ReadTimeout when nothing arrived and DeviceDisconnected
        when the device went away.  Both are ReadError.
        """
        handle = self._require_connected()
        events = list(self._transport.read(handle, timeout))
        if not events:
            raise ReadTimeout(f"No events within {timeout:g}s")
        return events

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_background(self, image: image_io.ImageSource) -> None:
        """Put an image on the LCD background.

        ``image`` is a decoded PIL image or a path to one.  It must
        already match lcd_image_format(); see fit_background().

        Raises:
            InvalidInput: no image, empty path or empty image.
            PathNotFound: path missing or undecodable.
            DeviceRejected: wrong size/format, or the write failed.
        """
        handle = self._require_connected()
        decoded = image_io.load_image(image)
        self._transport.write_image(handle, decoded)

    def fit_background(self, image: image_io.ImageSource) -> Image.Image:
        """Scale an image or path to the LCD background size, keeping aspect.

        Raises InvalidInput, PathNotFound, or DeviceRejected when the
        device has no LCD background.
        """
        handle = self._require_connected()
        decoded = image_io.load_image(image)
        return self._transport.scale_background(handle, decoded)

    def set_brightness(self, percent: int) -> None:
        """Raises DeviceRejected when ``percent`` is outside 0-100."""
        handle = self._require_connected()
        if isinstance(percent, bool) or not isinstance(percent, int):
            raise InvalidInput(f"Brightness must be an integer, got {percent!r}")
        self._transport.set_brightness(handle, percent)

    def set_button_image(self, index: int, image: image_io.ImageSource) -> None:
        """Buffer a key image; it reaches the device on flush()."""
        handle = self._require_connected()
        decoded = image_io.load_image(image)
        self._transport.set_button_image(handle, index, decoded)

    def flush(self) -> None:
        """Send buffered key images, if any are pending."""
        handle = self._require_connected()
        if self._transport.is_updated(handle):
            self._transport.flush(handle)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        """Close the device.  Never raises; repeated calls do nothing."""
        if self.state is not SessionState.CONNECTED:
            return

        handle, self._handle = self._handle, None
        self.state = SessionState.CLOSED
        try:
            self._transport.close(handle)
        except Exception:
            log.exception("Shutdown of %s failed", self._descriptor)

    def __enter__(self) -> DeviceSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return f"DeviceSession(state={self.state.value}, device={self._descriptor})"
