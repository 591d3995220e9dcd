"""
Tests for StreamDeckTransport -- the adapter over the streamdeck library.

The deck object is a MagicMock; no hardware or hidapi needed.
"""

import io
import threading
import time
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image
from StreamDeck.Transport.Transport import TransportError

from deckhand.device_base import DeviceCandidate, ImageFormat
from deckhand.device_streamdeck import (
    StreamDeckHandle,
    StreamDeckTransport,
    _to_image_format,
)
from deckhand.errors import (
    DeviceConnectionError,
    DeviceDisconnected,
    DeviceRejected,
    ShutdownError,
)
from deckhand.events import ButtonEvent, EventKind


def _format(size, fmt="JPEG"):
    return {"size": size, "format": fmt, "flip": (False, False), "rotation": 0}


def _make_deck(kind="Stream Deck +", screen=(0, 0), touch=(800, 100), keys=8):
    deck = MagicMock()
    deck.deck_type.return_value = kind
    deck.id.return_value = "/dev/hidraw3"
    deck.get_serial_number.return_value = "A1B2C3"
    deck.get_firmware_version.return_value = "1.04.006"
    deck.is_open.return_value = True
    deck.connected.return_value = True
    deck.key_count.return_value = keys
    deck.key_image_format.return_value = _format((120, 120))
    deck.screen_image_format.return_value = _format(screen)
    deck.touchscreen_image_format.return_value = _format(touch)
    return deck


@pytest.fixture
def transport():
    return StreamDeckTransport()


@pytest.fixture
def deck():
    return _make_deck()


@pytest.fixture
def handle(transport, deck):
    return transport.connect(DeviceCandidate(kind="Stream Deck +", identifier="x", device=deck))


# =========================================================================
# Format conversion
# =========================================================================

class TestImageFormat:

    def test_none(self):
        assert _to_image_format(None) is None

    def test_zero_size_is_absent(self):
        assert _to_image_format(_format((0, 0))) is None

    def test_full(self):
        fmt = _to_image_format({"size": (800, 100), "format": "JPEG",
                                "flip": (True, False), "rotation": 90})
        assert fmt == ImageFormat(size=(800, 100), format="JPEG",
                                  rotation=90, flip=(True, False))


# =========================================================================
# Enumerate / connect / describe
# =========================================================================

class TestConnect:

    def test_enumerate(self, transport):
        decks = [_make_deck("Stream Deck MK.2"), _make_deck("Stream Deck Neo")]
        with patch("StreamDeck.DeviceManager.DeviceManager") as dm:
            dm.return_value.enumerate.return_value = decks
            found = transport.enumerate()
        assert [c.kind for c in found] == ["Stream Deck MK.2", "Stream Deck Neo"]
        assert found[0].device is decks[0]

    def test_enumerate_empty(self, transport):
        with patch("StreamDeck.DeviceManager.DeviceManager") as dm:
            dm.return_value.enumerate.return_value = []
            assert transport.enumerate() == []

    def test_connect_opens_and_registers(self, transport, deck, handle):
        deck.open.assert_called_once()
        deck.reset.assert_called_once()
        deck.set_key_callback.assert_called_once_with(handle.on_key)
        deck.set_dial_callback.assert_called_once_with(handle.on_dial)
        deck.set_touchscreen_callback.assert_called_once_with(handle.on_touch)

    def test_connect_failure(self, transport, deck):
        deck.open.side_effect = TransportError("busy")
        with pytest.raises(DeviceConnectionError):
            transport.connect(DeviceCandidate(kind="k", identifier="x", device=deck))

    def test_reset_failure_closes_deck(self, transport, deck):
        deck.reset.side_effect = TransportError("reset failed")
        with pytest.raises(DeviceConnectionError):
            transport.connect(DeviceCandidate(kind="k", identifier="x", device=deck))
        deck.close.assert_called_once()
        deck.set_key_callback.assert_not_called()

    def test_reset_and_close_failure_still_connection_error(self, transport, deck):
        deck.reset.side_effect = TransportError("reset failed")
        deck.close.side_effect = TransportError("close failed")
        with pytest.raises(DeviceConnectionError):
            transport.connect(DeviceCandidate(kind="k", identifier="x", device=deck))

    def test_open_failure_does_not_close(self, transport, deck):
        deck.open.side_effect = TransportError("busy")
        with pytest.raises(DeviceConnectionError):
            transport.connect(DeviceCandidate(kind="k", identifier="x", device=deck))
        deck.close.assert_not_called()

    def test_connect_without_device(self, transport):
        with pytest.raises(DeviceConnectionError):
            transport.connect(DeviceCandidate(kind="k", identifier="x"))

    def test_describe(self, transport, handle):
        d = transport.describe(handle)
        assert (d.kind, d.serial_number, d.firmware_version) == \
            ("Stream Deck +", "A1B2C3", "1.04.006")

    def test_describe_missing_serial(self, transport, deck, handle):
        deck.get_serial_number.return_value = ""
        with pytest.raises(DeviceConnectionError):
            transport.describe(handle)

    def test_describe_transport_error_propagates(self, transport, deck, handle):
        deck.get_firmware_version.side_effect = TransportError("io")
        with pytest.raises(TransportError):
            transport.describe(handle)


# =========================================================================
# Events
# =========================================================================

class TestRead:

    def test_key_callbacks_become_events(self, transport, deck, handle):
        handle.on_key(deck, 3, True)
        handle.on_key(deck, 3, False)
        handle.on_dial(deck, 0, "TURN", 2)
        handle.on_touch(deck, "SHORT", {"x": 1, "y": 2})
        batch = transport.read(handle, 1.0)
        assert [e.kind for e in batch] == [
            EventKind.PRESSED, EventKind.RELEASED, EventKind.OTHER, EventKind.OTHER]
        assert batch[0] == ButtonEvent.pressed(3)

    def test_timeout_returns_empty(self, transport, handle):
        start = time.monotonic()
        assert transport.read(handle, 0.05) == []
        assert time.monotonic() - start < 1.0

    def test_event_from_reader_thread(self, transport, deck, handle):
        timer = threading.Timer(0.05, handle.on_key, args=(deck, 7, True))
        timer.start()
        try:
            batch = transport.read(handle, 2.0)
        finally:
            timer.cancel()
        assert batch == [ButtonEvent.pressed(7)]

    def test_closed_deck_is_disconnect(self, transport, deck, handle):
        deck.is_open.return_value = False
        with pytest.raises(DeviceDisconnected):
            transport.read(handle, 1.0)

    def test_liveness_does_not_rescan_bus(self, transport, deck, handle):
        assert transport.read(handle, 0.6) == []
        deck.connected.assert_not_called()


# =========================================================================
# Mutations
# =========================================================================

class TestWrite:

    def test_background_to_touchscreen(self, transport, deck, handle):
        transport.write_image(handle, Image.new("RGB", (800, 100)))
        args = deck.set_touchscreen_image.call_args[0]
        assert args[1:] == (0, 0, 800, 100)
        assert args[0][:2] == b"\xff\xd8"
        deck.set_screen_image.assert_not_called()

    def test_background_to_screen(self, transport):
        deck = _make_deck("Stream Deck Neo", screen=(248, 58), touch=(0, 0))
        handle = transport.connect(DeviceCandidate(kind="Neo", identifier="x", device=deck))
        transport.write_image(handle, Image.new("RGB", (248, 58)))
        deck.set_screen_image.assert_called_once()

    def test_background_native_encoding(self, transport):
        deck = _make_deck(touch=(4, 2))
        deck.touchscreen_image_format.return_value = {
            "size": (4, 2), "format": "BMP", "flip": (True, False), "rotation": 0}
        handle = transport.connect(DeviceCandidate(kind="+", identifier="x", device=deck))
        src = Image.new("RGB", (4, 2), (0, 0, 255))
        src.putpixel((0, 0), (255, 0, 0))
        transport.write_image(handle, src)
        native = deck.set_touchscreen_image.call_args[0][0]
        out = Image.open(io.BytesIO(native))
        assert out.getpixel((3, 0)) == (255, 0, 0)

    def test_background_rgba_accepted(self, transport, deck, handle):
        transport.write_image(handle, Image.new("RGBA", (800, 100)))
        deck.set_touchscreen_image.assert_called_once()

    def test_background_wrong_size(self, transport, deck, handle):
        with pytest.raises(DeviceRejected):
            transport.write_image(handle, Image.new("RGB", (10, 10)))
        deck.set_touchscreen_image.assert_not_called()

    def test_background_no_lcd(self, transport):
        deck = _make_deck("Stream Deck MK.2", screen=(0, 0), touch=(0, 0))
        handle = transport.connect(DeviceCandidate(kind="MK.2", identifier="x", device=deck))
        assert transport.image_format(handle) is None
        with pytest.raises(DeviceRejected):
            transport.write_image(handle, Image.new("RGB", (800, 100)))

    def test_background_transport_error(self, transport, deck, handle):
        deck.set_touchscreen_image.side_effect = TransportError("io")
        with pytest.raises(DeviceRejected):
            transport.write_image(handle, Image.new("RGB", (800, 100)))

    def test_scale_background_keeps_aspect(self, transport, handle):
        out = transport.scale_background(handle, Image.new("RGB", (400, 100), "red"))
        assert out.size == (800, 100)
        assert out.getpixel((10, 50)) == (0, 0, 0)
        assert out.getpixel((400, 50)) == (255, 0, 0)

    def test_scale_background_to_screen(self, transport):
        deck = _make_deck("Stream Deck Neo", screen=(248, 58), touch=(0, 0))
        handle = transport.connect(DeviceCandidate(kind="Neo", identifier="x", device=deck))
        out = transport.scale_background(handle, Image.new("RGB", (1000, 1000)))
        assert out.size == (248, 58)

    def test_scale_background_no_lcd(self, transport):
        deck = _make_deck("Stream Deck MK.2", screen=(0, 0), touch=(0, 0))
        handle = transport.connect(DeviceCandidate(kind="MK.2", identifier="x", device=deck))
        with pytest.raises(DeviceRejected):
            transport.scale_background(handle, Image.new("RGB", (10, 10)))

    @pytest.mark.parametrize("percent", [0, 50, 100])
    def test_brightness(self, transport, deck, handle, percent):
        transport.set_brightness(handle, percent)
        deck.set_brightness.assert_called_once_with(percent)

    @pytest.mark.parametrize("percent", [-1, 101, 255])
    def test_brightness_out_of_range(self, transport, deck, handle, percent):
        with pytest.raises(DeviceRejected):
            transport.set_brightness(handle, percent)
        deck.set_brightness.assert_not_called()


class TestKeyImages:

    def test_buffered_until_flush(self, transport, deck, handle):
        assert transport.is_updated(handle) is False
        transport.set_button_image(handle, 2, Image.new("RGB", (50, 50)))
        assert transport.is_updated(handle) is True
        deck.set_key_image.assert_not_called()

        transport.flush(handle)
        deck.set_key_image.assert_called_once()
        key, native = deck.set_key_image.call_args[0]
        assert key == 2
        assert Image.open(io.BytesIO(native)).size == (120, 120)
        assert transport.is_updated(handle) is False

    def test_bad_index(self, transport, handle):
        with pytest.raises(DeviceRejected):
            transport.set_button_image(handle, 8, Image.new("RGB", (120, 120)))


class TestClose:

    def test_resets_and_closes(self, transport, deck, handle):
        transport.close(handle)
        assert deck.reset.call_count == 2  # once on connect
        deck.close.assert_called_once()

    def test_already_closed_deck(self, transport, deck, handle):
        deck.is_open.return_value = False
        transport.close(handle)
        assert deck.reset.call_count == 1
        deck.close.assert_called_once()

    def test_transport_error_is_shutdown_error(self, transport, deck, handle):
        deck.close.side_effect = TransportError("gone")
        with pytest.raises(ShutdownError):
            transport.close(handle)


def test_handle_repr(deck):
    assert "/dev/hidraw3" in repr(StreamDeckHandle(deck))
