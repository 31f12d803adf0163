"""Terminal UI kit: keyboard-driven interview components."""

from .keys import Key, KeyPress, KeyReader, RawInput, StreamInput
from .session import Session, Tab, TabStatus
from .terminal import Terminal, Glyphs, ASCII_GLYPHS, UNICODE_GLYPHS
from .prompter import Prompter
from .fuzzy import FuzzyPicker
from .spinner import Spinner

__all__ = [
    'Key',
    'KeyPress',
    'KeyReader',
    'RawInput',
    'StreamInput',
    'Session',
    'Tab',
    'TabStatus',
    'Terminal',
    'Glyphs',
    'ASCII_GLYPHS',
    'UNICODE_GLYPHS',
    'Prompter',
    'FuzzyPicker',
    'Spinner'
]
