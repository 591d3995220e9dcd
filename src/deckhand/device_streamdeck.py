"""
Stream Deck transport on top of the ``streamdeck`` library.

The library reports key, dial and touchscreen changes through callbacks
running on its own reader thread.  This module queues them so that the
session sees a plain blocking read with a timeout:

  1. connect() opens the deck, resets it and installs the callbacks.
  2. Each callback pushes a ButtonEvent onto the handle's queue.
  3. read() waits for the first event, then drains whatever else is
     already queued, so a batch keeps hardware order.

When the library hits a transport failure its reader thread closes the
deck.  read() checks is_open() between queue waits and raises
DeviceDisconnected.  Image scaling and native encoding go through the
library's PILHelper.

Linux dependencies:
  * ``pip install streamdeck``  (needs libhidapi -- ``apt install libhidapi-libusb0``)
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Dict, List, Optional

from PIL import Image
from StreamDeck.ImageHelpers import PILHelper
from StreamDeck.Transport.Transport import TransportError

from .constants import BRIGHTNESS_MAX, BRIGHTNESS_MIN, READ_SLICE_S
from .device_base import (
    DeviceCandidate,
    DeviceDescriptor,
    DeviceTransport,
    ImageFormat,
)
from .errors import (
    DeviceConnectionError,
    DeviceDisconnected,
    DeviceRejected,
    ShutdownError,
)
from .events import ButtonEvent

log = logging.getLogger(__name__)


def _to_image_format(fmt: Optional[dict]) -> Optional[ImageFormat]:
    """Convert a library format dict; zero-sized areas mean 'absent'."""
    if not fmt:
        return None
    size = tuple(fmt.get("size") or (0, 0))
    if len(size) != 2 or not size[0] or not size[1]:
        return None
    flip = fmt.get("flip") or (False, False)
    return ImageFormat(
        size=(int(size[0]), int(size[1])),
        format=fmt.get("format") or "JPEG",
        rotation=int(fmt.get("rotation") or 0),
        flip=(bool(flip[0]), bool(flip[1])),
    )


class StreamDeckHandle:
    """Open deck plus the state deckhand keeps next to it."""

    def __init__(self, deck):
        self.deck = deck
        self.events: "queue.Queue[ButtonEvent]" = queue.Queue()
        self.pending: Dict[int, bytes] = {}
        self.lock = threading.Lock()

    # Library callbacks -- run on the library's reader thread

    def on_key(self, _deck, key: int, state: bool) -> None:
        if state:
            self.events.put(ButtonEvent.pressed(int(key)))
        else:
            self.events.put(ButtonEvent.released(int(key)))

    def on_dial(self, _deck, dial, event, value) -> None:
        self.events.put(ButtonEvent.other(f"dial {dial} {event} {value}"))

    def on_touch(self, _deck, event, args) -> None:
        self.events.put(ButtonEvent.other(f"touch {event}"))

    @property
    def alive(self) -> bool:
        return bool(self.deck.is_open())

    def __repr__(self) -> str:
        return f"StreamDeckHandle(id={self.deck.id()!r})"


class StreamDeckTransport(DeviceTransport):
    """DeviceTransport for Elgato Stream Deck hardware."""

    def enumerate(self) -> List[DeviceCandidate]:
        from StreamDeck.DeviceManager import DeviceManager

        decks = DeviceManager().enumerate() or []
        return [
            DeviceCandidate(kind=deck.deck_type(), identifier=str(deck.id()), device=deck)
            for deck in decks
        ]

    def connect(self, candidate: DeviceCandidate) -> StreamDeckHandle:
        deck = candidate.device
        if deck is None:
            raise DeviceConnectionError(f"No device object for {candidate.identifier}")

        try:
            deck.open()
        except TransportError as e:
            raise DeviceConnectionError(f"Unable to connect to {candidate.kind}: {e}") from e
        try:
            deck.reset()
        except TransportError as e:
            try:
                deck.close()
            except TransportError as close_err:
                log.warning("Close after failed reset also failed: %s", close_err)
            raise DeviceConnectionError(f"Unable to reset {candidate.kind}: {e}") from e

        handle = StreamDeckHandle(deck)
        deck.set_key_callback(handle.on_key)
        deck.set_dial_callback(handle.on_dial)
        deck.set_touchscreen_callback(handle.on_touch)
        log.debug("Opened %s at %s", candidate.kind, candidate.identifier)
        return handle

    def describe(self, handle: StreamDeckHandle) -> DeviceDescriptor:
        deck = handle.deck
        with deck:
            serial = deck.get_serial_number()
            firmware = deck.get_firmware_version()
        if not serial or not firmware:
            raise DeviceConnectionError(
                f"Incomplete identity: serial={serial!r} firmware={firmware!r}")
        return DeviceDescriptor(
            kind=deck.deck_type(),
            serial_number=str(serial).strip(),
            firmware_version=str(firmware).strip(),
        )

    def read(self, handle: StreamDeckHandle, timeout: float) -> List[ButtonEvent]:
        deadline = time.monotonic() + timeout
        first = None
        while first is None:
            if not handle.alive:
                raise DeviceDisconnected(f"{handle.deck.deck_type()} is gone")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return []
            try:
                first = handle.events.get(timeout=min(remaining, READ_SLICE_S))
            except queue.Empty:
                continue

        batch = [first]
        while True:
            try:
                batch.append(handle.events.get_nowait())
            except queue.Empty:
                return batch

    def image_format(self, handle: StreamDeckHandle) -> Optional[ImageFormat]:
        deck = handle.deck
        fmt = _to_image_format(deck.screen_image_format())
        if fmt is None:
            fmt = _to_image_format(deck.touchscreen_image_format())
        return fmt

    def _lcd_format(self, handle: StreamDeckHandle) -> ImageFormat:
        fmt = self.image_format(handle)
        if fmt is None:
            raise DeviceRejected(f"{handle.deck.deck_type()} has no LCD background")
        return fmt

    @staticmethod
    def _has_screen(deck) -> bool:
        # Neo info screen; otherwise the background is the + touch strip
        return _to_image_format(deck.screen_image_format()) is not None

    def scale_background(self, handle: StreamDeckHandle, image: Image.Image) -> Image.Image:
        self._lcd_format(handle)
        deck = handle.deck
        if self._has_screen(deck):
            return PILHelper.create_scaled_screen_image(deck, image)
        return PILHelper.create_scaled_touchscreen_image(deck, image)

    def write_image(self, handle: StreamDeckHandle, image: Image.Image) -> None:
        fmt = self._lcd_format(handle)
        if image.size != fmt.size:
            raise DeviceRejected(
                f"Image is {image.width}x{image.height}, device expects "
                f"{fmt.width}x{fmt.height}")

        deck = handle.deck
        image = image.convert("RGB")
        try:
            with deck:
                if self._has_screen(deck):
                    native = PILHelper.to_native_screen_format(deck, image)
                    deck.set_screen_image(native)
                else:
                    native = PILHelper.to_native_touchscreen_format(deck, image)
                    deck.set_touchscreen_image(native, 0, 0, fmt.width, fmt.height)
        except TransportError as e:
            raise DeviceRejected(f"Background write failed: {e}") from e
        log.debug("Background written: %dx%d %s, %d bytes",
                  fmt.width, fmt.height, fmt.format, len(native))

    def set_brightness(self, handle: StreamDeckHandle, percent: int) -> None:
        if not BRIGHTNESS_MIN <= percent <= BRIGHTNESS_MAX:
            raise DeviceRejected(
                f"Brightness {percent} outside {BRIGHTNESS_MIN}-{BRIGHTNESS_MAX}")
        try:
            with handle.deck:
                handle.deck.set_brightness(percent)
        except TransportError as e:
            raise DeviceRejected(f"Brightness write failed: {e}") from e

    def set_button_image(self, handle: StreamDeckHandle, index: int,
                         image: Image.Image) -> None:
        deck = handle.deck
        if not 0 <= index < deck.key_count():
            raise DeviceRejected(f"Key {index} outside 0-{deck.key_count() - 1}")
        if _to_image_format(deck.key_image_format()) is None:
            raise DeviceRejected(f"{deck.deck_type()} has no key displays")

        scaled = PILHelper.create_scaled_key_image(deck, image)
        native = PILHelper.to_native_key_format(deck, scaled)
        with handle.lock:
            handle.pending[index] = native

    def is_updated(self, handle: StreamDeckHandle) -> bool:
        with handle.lock:
            return bool(handle.pending)

    def flush(self, handle: StreamDeckHandle) -> None:
        with handle.lock:
            pending, handle.pending = handle.pending, {}
        try:
            with handle.deck:
                for key, native in sorted(pending.items()):
                    handle.deck.set_key_image(key, native)
        except TransportError as e:
            raise DeviceRejected(f"Key image flush failed: {e}") from e
        log.debug("Flushed %d key image(s)", len(pending))

    def close(self, handle: StreamDeckHandle) -> None:
        deck = handle.deck
        try:
            if deck.is_open():
                with deck:
                    deck.reset()
            deck.close()
        except TransportError as e:
            raise ShutdownError(f"Unable to close {deck.deck_type()}: {e}") from e
        log.info("Device closed")
