"""Shared constants for deckhand."""

# How long one read blocks before the loop gives up (seconds).
DEFAULT_POLL_TIMEOUT_S = 200.0

# Counted repeats of the same key needed to stop.  The first press of a key
# only arms the counter, so the gesture is threshold + 1 presses in total.
DEFAULT_EXIT_REPEAT_THRESHOLD = 6

BRIGHTNESS_MIN = 0
BRIGHTNESS_MAX = 100

# Longest single wait on the event queue between deck liveness checks.
READ_SLICE_S = 0.25
