"""Interactive terminal components.

Every component blocks until the user confirms or cancels. Redraws happen
inside a transient rich Live display, so nothing of the component's frame is
left behind, and the cursor is made visible again on every exit path.
Cancelling marks the session and raises InterviewCancelled.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence, Set

from rich.console import Group, RenderableType
from rich.live import Live
from rich.markup import escape
from rich.text import Text

from ..core import timeexpr
from ..core.errors import InterviewCancelled, TimeParseError
from ..core.models import Epoch, Precision
from .keys import Key, KeyPress
from .session import Session, TabStatus
from .terminal import Terminal


logger = logging.getLogger(__name__)

Validator = Callable[[str], Optional[str]]

TIMESTAMP_FORMATS_HINT = "Formats: +30m, -2h, 2024-01-15 14:30, 14:30, now"


def render_tabs(session: Session, terminal: Terminal) -> Optional[Text]:
    """Render the session's tab bar, or None when the session has no tabs."""
    if not session.tabs:
        return None

    glyphs = terminal.glyphs
    bar = Text()
    for i, tab in enumerate(session.tabs):
        if tab.status is TabStatus.CURRENT:
            bar.append(f"{glyphs.tab_current} {tab.name}", style="bold reverse")
        elif tab.status is TabStatus.COMPLETED:
            bar.append(glyphs.tab_done, style="green")
            bar.append(f" {tab.name}", style="dim")
        else:
            bar.append(f"{glyphs.tab_pending} {tab.name}", style="dim")
        if i < len(session.tabs) - 1:
            bar.append(f" {glyphs.separator} ", style="dim")
    return bar


class Component(ABC):
    """Base class: one question, one blocking decision."""

    _DONE = object()

    def __init__(self, terminal: Terminal, session: Session, key: str, show_tabs: bool = True):
        self.terminal = terminal
        self.session = session
        self.key = key
        self.show_tabs = show_tabs
        self.result = None

    @abstractmethod
    def body(self) -> List[RenderableType]:
        """Renderables below the tab bar."""
        pass

    @abstractmethod
    def handle(self, press: KeyPress):
        """Process one key; return ``_DONE`` once ``self.result`` is final."""
        pass

    def summary(self) -> str:
        """One-line echo printed after a confirmed answer."""
        return ""

    def render(self) -> RenderableType:
        parts: List[RenderableType] = []
        tabs = render_tabs(self.session, self.terminal) if self.show_tabs else None
        if tabs is not None:
            parts.extend([tabs, Text()])
        parts.extend(self.body())
        return Group(*parts)

    def cancel(self):
        self.session.cancel()
        raise InterviewCancelled(self.key)

    def run(self):
        console = self.terminal.console
        console.show_cursor(False)
        try:
            with self.terminal.raw_mode(), \
                    Live(self.render(), console=console, auto_refresh=False, transient=True,
                         redirect_stdout=False, redirect_stderr=False) as live:
                while True:
                    try:
                        press = self.terminal.read_key()
                    except EOFError:
                        logger.debug(f"Input closed while answering '{self.key}'")
                        self.cancel()
                    if self.handle(press) is self._DONE:
                        break
                    live.update(self.render(), refresh=True)
        finally:
            console.show_cursor(True)

        if self.key:
            self.session.set_answer(self.key, self.result)
        echo = self.summary()
        if echo:
            console.print(echo)
        return self.result


def _hint(*pairs) -> Text:
    hint = Text(style="dim")
    for i, (key, action) in enumerate(pairs):
        if i:
            hint.append(" · ")
        hint.append(key, style="bold")
        hint.append(f" {action}")
    return hint


class _ListComponent(Component):
    """Shared cursor movement for the select lists."""

    def __init__(self, terminal, session, key, prompt: str, options: Sequence[str],
                 descriptions: Optional[Sequence[str]] = None, cursor: int = 0, show_tabs=True):
        super().__init__(terminal, session, key, show_tabs)
        if not options:
            raise ValueError("A select component needs at least one option")
        self.prompt = prompt
        self.options = list(options)
        self.descriptions = list(descriptions or [])
        self.cursor = cursor if 0 <= cursor < len(self.options) else 0

    def move(self, press: KeyPress) -> bool:
        total = len(self.options)
        if press.key is Key.UP or press.is_char("k"):
            self.cursor = (self.cursor - 1) % total
        elif press.key is Key.DOWN or press.is_char("j"):
            self.cursor = (self.cursor + 1) % total
        elif press.key in (Key.HOME, Key.PGUP):
            self.cursor = 0
        elif press.key in (Key.END, Key.PGDN):
            self.cursor = total - 1
        else:
            return False
        return True

    def option_line(self, index: int, marker: str) -> Text:
        glyphs = self.terminal.glyphs
        line = Text()
        if index == self.cursor:
            line.append(f"{glyphs.arrow} ", style="cyan")
        else:
            line.append("  ")
        line.append(f"{marker} {self.options[index]}")
        if index < len(self.descriptions) and self.descriptions[index]:
            line.append(f" {self.descriptions[index]}", style="dim")
        return line


class MultiSelect(_ListComponent):
    """Checkbox list; the result is the set of selected indices."""

    def __init__(self, terminal, session, key, prompt, options, descriptions=None,
                 defaults: Optional[Sequence[bool]] = None, show_tabs=True):
        super().__init__(terminal, session, key, prompt, options, descriptions, 0, show_tabs)
        self.selected: Set[int] = {i for i, on in enumerate(defaults or []) if on and i < len(options)}

    def body(self):
        glyphs = self.terminal.glyphs
        lines = [Text(self.prompt, style="bold"), Text()]
        for i in range(len(self.options)):
            marker = glyphs.box_checked if i in self.selected else glyphs.box_empty
            lines.append(self.option_line(i, marker))
        lines.extend([Text(), _hint(("Space", "toggle"), ("Enter", "confirm"), ("Esc", "cancel"))])
        return lines

    def handle(self, press):
        if self.move(press):
            return None
        if press.key is Key.SPACE:
            self.selected ^= {self.cursor}
        elif press.key is Key.ENTER:
            self.result = set(self.selected)
            return self._DONE
        elif press.key is Key.ESC or press.is_char("q"):
            self.cancel()
        return None

    def summary(self):
        chosen = ", ".join(self.options[i] for i in sorted(self.result)) or "(none)"
        return f"[bold]{escape(self.prompt)}[/bold] [cyan]{escape(chosen)}[/cyan]"


class SingleSelect(_ListComponent):
    """Radio list; the result is the chosen index."""

    def body(self):
        glyphs = self.terminal.glyphs
        lines = [Text(self.prompt, style="bold"), Text()]
        for i in range(len(self.options)):
            marker = glyphs.radio_checked if i == self.cursor else glyphs.radio_empty
            lines.append(self.option_line(i, marker))
        lines.extend([Text(), _hint(("Enter", "select"), ("Esc", "cancel"))])
        return lines

    def handle(self, press):
        if self.move(press):
            return None
        if press.key is Key.ENTER:
            self.result = self.cursor
            return self._DONE
        if press.key is Key.ESC or press.is_char("q"):
            self.cancel()
        return None

    def summary(self):
        return (f"[bold]{escape(self.prompt)}[/bold] "
                f"[cyan]{escape(self.options[self.result])}[/cyan]")


class _LineEditor(Component):
    """Single-line editing shared by the text and timestamp inputs."""

    def __init__(self, terminal, session, key, prompt: str, value: str = "", show_tabs=True):
        super().__init__(terminal, session, key, show_tabs)
        self.prompt = prompt
        self.value = value
        self.pos = len(value)

    def edit(self, press: KeyPress) -> bool:
        if press.key is Key.BACKSPACE:
            if self.pos > 0:
                self.value = self.value[:self.pos - 1] + self.value[self.pos:]
                self.pos -= 1
        elif press.key is Key.LEFT:
            self.pos = max(0, self.pos - 1)
        elif press.key is Key.RIGHT:
            self.pos = min(len(self.value), self.pos + 1)
        elif press.key is Key.HOME:
            self.pos = 0
        elif press.key is Key.END:
            self.pos = len(self.value)
        elif press.key in (Key.CHAR, Key.SPACE):
            char = press.char if press.key is Key.CHAR else " "
            self.value = self.value[:self.pos] + char + self.value[self.pos:]
            self.pos += 1
        else:
            return False
        return True

    def value_text(self) -> Text:
        text = Text(self.value[:self.pos])
        under = self.value[self.pos:self.pos + 1] or "_"
        text.append(under, style="underline")
        text.append(self.value[self.pos + 1:])
        return text


class TextInput(_LineEditor):
    """Free-text input with an optional validator.

    The validator returns an error message (or raises ValueError) to reject
    the value; the component then stays open with the text intact.
    """

    def __init__(self, terminal, session, key, prompt, default: str = "",
                 validator: Optional[Validator] = None, show_tabs=True):
        super().__init__(terminal, session, key, prompt, "", show_tabs)
        self.default = default
        self.validator = validator
        self.error = ""

    def body(self):
        line = Text(self.prompt, style="bold")
        if self.default and not self.value:
            line.append(f" ({self.default})", style="dim")
        line.append(": ")
        line.append_text(self.value_text())
        lines = [line]
        if self.error:
            lines.append(Text(self.error, style="red"))
        return lines

    def handle(self, press):
        if press.key is Key.ESC:
            self.cancel()
        if press.key is Key.ENTER:
            value = self.value or self.default
            error = self._validate(value)
            if error:
                self.error = error
                return None
            self.result = value
            return self._DONE
        if self.edit(press):
            self.error = ""
        return None

    def _validate(self, value: str) -> str:
        if self.validator is None:
            return ""
        try:
            return self.validator(value) or ""
        except ValueError as e:
            return str(e)

    def summary(self):
        return f"[bold]{escape(self.prompt)}:[/bold] [cyan]{escape(self.result)}[/cyan]"


class TimestampInput(_LineEditor):
    """Time expression input with a live preview recomputed on every key."""

    def __init__(self, terminal, session, key, prompt, base_epoch: Epoch,
                 show_tabs=True, clock: Callable[[], float] = time.time):
        super().__init__(terminal, session, key, prompt, "", show_tabs)
        self.base_epoch = base_epoch
        self.clock = clock
        self.preview_epoch: Optional[Epoch] = None
        self.preview = ""
        self.update_preview()

    def update_preview(self) -> None:
        text = self.value.strip()
        now = int(self.clock())
        try:
            if not text:
                self.preview_epoch = self.base_epoch
                self.preview = f"{timeexpr.format_display(self.base_epoch)} (now)"
            elif timeexpr.looks_relative(text):
                self.preview_epoch = timeexpr.parse(text, self.base_epoch)
                phrase = timeexpr.relative_phrase(self.preview_epoch, now)
                self.preview = f"{timeexpr.format_display(self.preview_epoch)} ({phrase})"
            else:
                self.preview_epoch = timeexpr.parse_absolute(text, now)
                self.preview = timeexpr.format_display(self.preview_epoch)
        except TimeParseError:
            self.preview_epoch = None
            self.preview = "Invalid format"

    def body(self):
        glyphs = self.terminal.glyphs
        line = Text(self.prompt, style="bold")
        line.append(": ")
        line.append_text(self.value_text())

        preview = Text("  ")
        if self.preview_epoch is None:
            preview.append(f"{glyphs.preview} {self.preview}", style="red")
        else:
            preview.append(glyphs.preview, style="cyan")
            preview.append(f" {self.preview}")
            precision = timeexpr.detect_precision(self.value)
            if precision is Precision.HOUR:
                preview.append("  minutes and seconds randomized on confirm", style="dim")
            elif precision is not Precision.FULL:
                preview.append("  seconds randomized on confirm", style="dim")

        lines = [line, preview]
        if self.preview_epoch is not None and not timeexpr.is_plausible(self.preview_epoch, int(self.clock())):
            lines.append(Text("  more than a year away from now", style="yellow"))
        lines.append(Text(f"  {TIMESTAMP_FORMATS_HINT}", style="dim"))
        return lines

    def handle(self, press):
        if press.key is Key.ESC:
            self.cancel()
        if press.key is Key.ENTER:
            if self.preview_epoch is None:
                return None
            precision = timeexpr.detect_precision(self.value)
            self.result = timeexpr.jitter(self.preview_epoch, precision)
            logger.debug(f"Timestamp '{self.value}' -> {self.result} ({precision.value})")
            return self._DONE
        if self.edit(press):
            self.update_preview()
        return None

    def summary(self):
        return (f"[bold]{escape(self.prompt)}:[/bold] "
                f"[cyan]{escape(timeexpr.format_display(self.result))}[/cyan]")


class Confirm(Component):
    """Yes/no question. Enter takes the default; Esc or q answers no."""

    def __init__(self, terminal, session, question: str, default: bool = False):
        super().__init__(terminal, session, "", show_tabs=False)
        self.question = question
        self.default = default

    def body(self):
        line = Text(self.question, style="yellow")
        line.append(" [Y/n] " if self.default else " [y/N] ")
        return [line]

    def handle(self, press):
        if press.is_char("y", "Y"):
            self.result = True
        elif press.is_char("n", "N", "q") or press.key is Key.ESC:
            self.result = False
        elif press.key is Key.ENTER:
            self.result = self.default
        else:
            return None
        return self._DONE

    def run(self):
        try:
            return super().run()
        except InterviewCancelled:
            # Closed input while confirming counts as "no", not a cancelled interview
            self.session.cancelled = False
            return False

    def summary(self):
        answer = "yes" if self.result else "no"
        return f"[yellow]{escape(self.question)}[/yellow] {answer}"


class SelectRenderer(ABC):
    """Shared contract of the built-in and fuzzy-picker select components."""

    @abstractmethod
    def multi_select(self, session: Session, key: str, prompt: str, options: Sequence[str],
                     descriptions: Sequence[str], defaults: Sequence[bool]) -> Set[int]:
        pass

    @abstractmethod
    def single_select(self, session: Session, key: str, prompt: str, options: Sequence[str],
                      descriptions: Sequence[str], initial: int) -> int:
        pass


class NativeSelect(SelectRenderer):
    """Select components drawn by git-retime itself."""

    def __init__(self, terminal: Terminal, show_tabs: bool = True):
        self.terminal = terminal
        self.show_tabs = show_tabs

    def multi_select(self, session, key, prompt, options, descriptions, defaults):
        return MultiSelect(self.terminal, session, key, prompt, options, descriptions,
                           defaults, show_tabs=self.show_tabs).run()

    def single_select(self, session, key, prompt, options, descriptions, initial):
        return SingleSelect(self.terminal, session, key, prompt, options, descriptions,
                            initial, show_tabs=self.show_tabs).run()
