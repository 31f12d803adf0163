"""Single-keystroke input: raw terminal mode and escape-sequence decoding."""

import codecs
import logging
import os
import select
import sys
import termios
import tty
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional


logger = logging.getLogger(__name__)

ESCAPE_TIMEOUT = 0.1


class Key(Enum):
    """Closed set of keys understood by the UI components."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    TAB = "tab"
    SHIFT_TAB = "shift_tab"
    HOME = "home"
    END = "end"
    PGUP = "pgup"
    PGDN = "pgdn"
    ENTER = "enter"
    ESC = "esc"
    BACKSPACE = "backspace"
    SPACE = "space"
    CHAR = "char"


@dataclass(frozen=True)
class KeyPress:
    """A decoded key. ``char`` is set only for Key.CHAR."""
    key: Key
    char: str = ""

    def is_char(self, *chars: str) -> bool:
        return self.key is Key.CHAR and self.char in chars


# Sequences following ESC. "[1~"-style sequences carry a trailing "~".
_ESCAPE_SEQUENCES = {
    "[A": Key.UP, "OA": Key.UP,
    "[B": Key.DOWN, "OB": Key.DOWN,
    "[C": Key.RIGHT, "OC": Key.RIGHT,
    "[D": Key.LEFT, "OD": Key.LEFT,
    "[Z": Key.SHIFT_TAB,
    "[H": Key.HOME, "OH": Key.HOME,
    "[F": Key.END, "OF": Key.END,
    "[1": Key.HOME, "[7": Key.HOME,
    "[4": Key.END, "[8": Key.END,
    "[5": Key.PGUP,
    "[6": Key.PGDN,
}
_TILDE_SEQUENCES = {"[1", "[4", "[5", "[6", "[7", "[8"}

_SIMPLE_KEYS = {
    "\r": Key.ENTER,
    "\n": Key.ENTER,
    "\t": Key.TAB,
    "\x7f": Key.BACKSPACE,
    "\b": Key.BACKSPACE,
    " ": Key.SPACE,
}


class KeySource(ABC):
    """Source of single characters.

    ``read(None)`` blocks; ``read(timeout)`` returns '' when nothing arrives
    within ``timeout`` seconds.
    """

    @abstractmethod
    def read(self, timeout: Optional[float] = None) -> str:
        """Return the next character, or '' on timeout or end of input."""


class RawInput(KeySource):
    """Reads keystrokes from a terminal file descriptor in cbreak mode.

    Use as a context manager; the saved terminal attributes are restored on
    exit whatever happens inside the block.
    """

    def __init__(self, stream=None):
        self.stream = stream or sys.stdin
        self.fd = self.stream.fileno()
        self._saved = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def __enter__(self) -> "RawInput":
        self._saved = termios.tcgetattr(self.fd)
        tty.setcbreak(self.fd)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._saved is not None:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved)
            self._saved = None

    def read(self, timeout: Optional[float] = None) -> str:
        while True:
            if timeout is not None:
                ready, _, _ = select.select([self.fd], [], [], timeout)
                if not ready:
                    return ""
            data = os.read(self.fd, 1)
            if not data:
                raise EOFError("Input stream closed")
            char = self._decoder.decode(data)
            if char:
                return char


class StreamInput(KeySource):
    """Reads characters from a non-interactive text stream (pipes, tests).

    A stream cannot be waited on, so the bounded read that follows ESC only
    accepts a character that can start an escape sequence; anything else is
    kept for the next read and the ESC stands alone.
    """

    def __init__(self, stream):
        self.stream = stream
        self._pushback = ""
        self._last = ""

    def read(self, timeout: Optional[float] = None) -> str:
        if self._pushback:
            char, self._pushback = self._pushback, ""
        else:
            char = self.stream.read(1)

        if not char:
            if timeout is None:
                raise EOFError("Input stream closed")
            return ""

        if timeout is not None and self._last == "\x1b" and char not in "[O":
            self._pushback = char
            self._last = ""
            return ""

        self._last = char
        return char


class KeyReader:
    """Decodes characters from a KeySource into KeyPress events.

    States: read one char; on ESC, try a bounded read of the rest of the
    sequence; map known sequences, treat a lone ESC as ESC and silently drop
    sequences we do not know before reading again.
    """

    def __init__(self, source: KeySource, escape_timeout: float = ESCAPE_TIMEOUT):
        self.source = source
        self.escape_timeout = escape_timeout

    def read_key(self) -> KeyPress:
        while True:
            char = self.source.read(None)

            if char == "\x03":
                raise KeyboardInterrupt
            if char == "\x1b":
                key = self._read_escape()
                if key is None:
                    logger.debug("Ignoring unknown escape sequence")
                    continue
                return KeyPress(key)
            if char in _SIMPLE_KEYS:
                return KeyPress(_SIMPLE_KEYS[char])
            if char.isprintable():
                return KeyPress(Key.CHAR, char)
            logger.debug(f"Ignoring control character {char!r}")

    def _read_escape(self) -> Optional[Key]:
        first = self.source.read(self.escape_timeout)
        if not first:
            return Key.ESC
        if first not in "[O":
            # Alt+<key>; not part of the closed key set
            return None

        second = self.source.read(self.escape_timeout)
        sequence = first + second
        key = _ESCAPE_SEQUENCES.get(sequence)

        if sequence in _TILDE_SEQUENCES:
            if self.source.read(self.escape_timeout) != "~":
                self._drain()
                return None
        elif key is None and second.isdigit():
            self._drain()

        return key

    def _drain(self) -> None:
        # Swallow the tail of an unknown CSI sequence (e.g. "[15~", "[1;5C")
        for _ in range(8):
            char = self.source.read(self.escape_timeout)
            if not char or char.isalpha() or char == "~":
                return
