"""deckhand - keep a Stream Deck open until its exit gesture."""

from .__version__ import __version__
from .device_base import DeviceCandidate, DeviceDescriptor, DeviceTransport, ImageFormat
from .errors import (
    DeckError,
    DeviceConnectionError,
    DeviceDisconnected,
    DeviceRejected,
    DiscoveryError,
    InvalidInput,
    MutationError,
    PathNotFound,
    ReadError,
    ReadTimeout,
    SessionClosed,
    ShutdownError,
)
from .events import ButtonEvent, EventKind
from .gesture import ExitReason, GestureLoop, RepeatCounter, run_until_gesture
from .session import DeviceSession, SessionState

__all__ = [
    "__version__",
    "ButtonEvent",
    "DeckError",
    "DeviceCandidate",
    "DeviceConnectionError",
    "DeviceDescriptor",
    "DeviceDisconnected",
    "DeviceRejected",
    "DeviceSession",
    "DeviceTransport",
    "DiscoveryError",
    "EventKind",
    "ExitReason",
    "GestureLoop",
    "ImageFormat",
    "InvalidInput",
    "MutationError",
    "PathNotFound",
    "ReadError",
    "ReadTimeout",
    "RepeatCounter",
    "SessionClosed",
    "SessionState",
    "ShutdownError",
    "run_until_gesture",
]
