"""
deckhand command-line interface.

Usage::

    deckhand                      # same as 'deckhand run'
    deckhand run --brightness 40 --background ~/wall.png
    deckhand detect
    deckhand info
    deckhand brightness 60
    deckhand background ~/wall.png
    deckhand key-image 0 ~/icon.png

Exit codes: 0 on a normal stop (gesture, idle timeout, unplugged device),
1 when no device could be opened or a one-shot command failed.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from typing import List, Optional

from . import paths
from .__version__ import __version__
from .errors import DeviceConnectionError, DiscoveryError, MutationError
from .gesture import run_until_gesture
from .session import DeviceSession, default_transport

log = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def _open_session() -> Optional[DeviceSession]:
    """Open the device or print why not."""
    try:
        return DeviceSession.open()
    except (DiscoveryError, DeviceConnectionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return None


def _apply_background(session: DeviceSession, path: str) -> bool:
    if session.lcd_image_format() is None:
        print(f"{session.descriptor.kind} has no LCD background", file=sys.stderr)
        return False
    try:
        image = session.fit_background(path)
        session.set_background(image)
    except MutationError as e:
        print(f"Background not set: {e}", file=sys.stderr)
        return False
    log.info("Background set from %s", path)
    return True


def _apply_brightness(session: DeviceSession, percent: int) -> bool:
    try:
        session.set_brightness(percent)
    except MutationError as e:
        print(f"Brightness not set: {e}", file=sys.stderr)
        return False
    log.info("Brightness set to %d%%", percent)
    return True


class DeviceCommands:
    """Discovery and the long-running gesture loop."""

    @staticmethod
    def detect() -> int:
        try:
            candidates = default_transport().enumerate()
        except Exception as e:
            print(f"Error: unable to list devices: {e}", file=sys.stderr)
            return 1
        if not candidates:
            print("No devices found.")
            return 1
        for i, c in enumerate(candidates):
            marker = "*" if i == 0 else " "
            print(f"{marker} [{i}] {c.kind}  {c.identifier}")
        return 0

    @staticmethod
    def info() -> int:
        session = _open_session()
        if session is None:
            return 1
        with session:
            print(f"Device:   {session.descriptor.kind}")
            print(f"Serial:   {session.descriptor.serial_number}")
            print(f"Firmware: {session.descriptor.firmware_version}")
            fmt = session.lcd_image_format()
            if fmt is None:
                print("LCD:      none")
            else:
                print(f"LCD:      {fmt.width}x{fmt.height} {fmt.format}")
        return 0

    @staticmethod
    def run(timeout: Optional[float] = None, threshold: Optional[int] = None,
            brightness: Optional[int] = None, background: Optional[str] = None) -> int:
        settings = paths.load_settings()
        overrides = {
            'poll_timeout_seconds': timeout,
            'exit_repeat_threshold': threshold,
            'brightness': brightness,
            'background': background,
        }
        settings = dataclasses.replace(
            settings, **{k: v for k, v in overrides.items() if v is not None})

        session = _open_session()
        if session is None:
            return 1

        with session:
            if settings.brightness is not None:
                _apply_brightness(session, settings.brightness)
            if settings.background:
                _apply_background(session, settings.background)
            reason = run_until_gesture(session, settings)

        print(f"Stopped ({reason.value}).")
        return 0


class DisplayCommands:
    """One-shot changes: open, apply, close."""

    @staticmethod
    def set_brightness(percent: int) -> int:
        session = _open_session()
        if session is None:
            return 1
        with session:
            ok = _apply_brightness(session, percent)
        return 0 if ok else 1

    @staticmethod
    def set_background(path: str) -> int:
        session = _open_session()
        if session is None:
            return 1
        with session:
            ok = _apply_background(session, path)
        return 0 if ok else 1

    @staticmethod
    def set_key_image(index: int, path: str) -> int:
        session = _open_session()
        if session is None:
            return 1
        with session:
            try:
                session.set_button_image(index, path)
                session.flush()
            except MutationError as e:
                print(f"Key image not set: {e}", file=sys.stderr)
                return 1
        return 0


detect = DeviceCommands.detect
show_info = DeviceCommands.info
run = DeviceCommands.run
set_brightness = DisplayCommands.set_brightness
set_background = DisplayCommands.set_background
set_key_image = DisplayCommands.set_key_image


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='deckhand',
        description='Keep a Stream Deck open until its exit gesture.',
    )
    parser.add_argument('--version', action='version', version=f'deckhand {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    sub = parser.add_subparsers(dest='command')

    p_run = sub.add_parser('run', help='Open the device and wait for the exit gesture')
    p_run.add_argument('--timeout', type=_positive_float, default=None,
                       help='Seconds one read may block (default from config, 200)')
    p_run.add_argument('--threshold', type=_positive_int, default=None,
                       help='Repeat presses of one key that stop the loop (default 6)')
    p_run.add_argument('--brightness', type=int, default=None, help='Brightness 0-100')
    p_run.add_argument('--background', default=None, help='LCD background image')

    sub.add_parser('detect', help='List visible devices')
    sub.add_parser('info', help='Show serial number, firmware and LCD format')

    p_bright = sub.add_parser('brightness', help='Set brightness and exit')
    p_bright.add_argument('percent', type=int, help='0-100')

    p_bg = sub.add_parser('background', help='Set LCD background and exit')
    p_bg.add_argument('path', help='Image file')

    p_key = sub.add_parser('key-image', help='Set one key image and exit')
    p_key.add_argument('index', type=int, help='Key index, 0 is top left')
    p_key.add_argument('path', help='Image file')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 0

    _setup_logging(args.verbose)

    if args.command == 'detect':
        return DeviceCommands.detect()
    if args.command == 'info':
        return DeviceCommands.info()
    if args.command == 'brightness':
        return DisplayCommands.set_brightness(args.percent)
    if args.command == 'background':
        return DisplayCommands.set_background(args.path)
    if args.command == 'key-image':
        return DisplayCommands.set_key_image(args.index, args.path)
    if args.command == 'run':
        return DeviceCommands.run(
            timeout=args.timeout,
            threshold=args.threshold,
            brightness=args.brightness,
            background=args.background,
        )
    return DeviceCommands.run()


if __name__ == '__main__':
    sys.exit(main())
