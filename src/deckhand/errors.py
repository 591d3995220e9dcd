"""
Error taxonomy for deckhand.

Startup errors (DiscoveryError, DeviceConnectionError) are fatal.
ReadError ends the gesture loop quietly.  MutationError goes back to
whoever asked for the change.  ShutdownError is logged and dropped.
"""


class DeckError(Exception):
    """Base for every error raised by deckhand."""


class DiscoveryError(DeckError):
    """No candidate device is visible."""


class DeviceConnectionError(DeckError):
    """A device is visible but could not be opened or identified."""


class SessionClosed(DeckError):
    """Operation on a session that is not connected."""


class ReadError(DeckError):
    """Reading events stopped producing anything."""


class ReadTimeout(ReadError):
    """Nothing arrived within the poll timeout."""


class DeviceDisconnected(ReadError):
    """The device went away."""


class MutationError(DeckError):
    """An image or brightness change failed."""


class InvalidInput(MutationError):
    """Caller passed nothing usable (empty path, empty image)."""


class DeviceRejected(MutationError):
    """The device or library refused the value."""


class PathNotFound(MutationError):
    """Image path is missing or could not be decoded."""


class ShutdownError(DeckError):
    """Closing the device failed."""
