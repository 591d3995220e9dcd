"""deckhand version information."""

__version__ = "0.2.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Version history:
# 0.1.0 - Initial release: open first deck, repeated-press exit gesture
# 0.2.0 - JSON config, background/brightness on start, detect/info commands,
#         buffered key images with flush
