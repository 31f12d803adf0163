"""Terminal wrapper: rich console output, glyph sets and the key source."""

import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.text import Text

from .keys import KeyReader, KeySource, RawInput


@dataclass(frozen=True)
class Glyphs:
    """Symbols used by the components."""
    check: str
    cross: str
    box_empty: str
    box_checked: str
    radio_empty: str
    radio_checked: str
    arrow: str
    preview: str
    tab_current: str
    tab_pending: str
    tab_done: str
    separator: str
    bullet: str


UNICODE_GLYPHS = Glyphs(
    check="✓", cross="✗", box_empty="[ ]", box_checked="[✓]",
    radio_empty="( )", radio_checked="(●)", arrow="›", preview="→",
    tab_current="●", tab_pending="○", tab_done="✓", separator="│", bullet="·",
)

ASCII_GLYPHS = Glyphs(
    check="[x]", cross="[!]", box_empty="[ ]", box_checked="[x]",
    radio_empty="( )", radio_checked="(*)", arrow=">", preview="->",
    tab_current="*", tab_pending="o", tab_done="+", separator="|", bullet="-",
)


def supports_ansi(console: Console) -> bool:
    """True when the console is a real terminal that understands ANSI codes."""
    if not console.is_terminal or console.is_dumb_terminal:
        return False
    if os.environ.get("NO_COLOR") or console.legacy_windows:
        return False
    return True


class Terminal:
    """Everything a component needs to talk to the user.

    Args:
        console: Rich console for output (creates new if None)
        source: Character source for key presses
        ascii_only: Force the ASCII glyph set
    """

    def __init__(self, console: Optional[Console] = None, source: Optional[KeySource] = None,
                 ascii_only: bool = False):
        self.console = console or Console(highlight=False)
        self.source = source
        self.keys = KeyReader(source) if source is not None else None
        self.ansi = supports_ansi(self.console)
        self.glyphs = ASCII_GLYPHS if (ascii_only or not self.ansi) else UNICODE_GLYPHS

    def read_key(self):
        if self.keys is None:
            raise RuntimeError("Terminal has no key source attached")
        return self.keys.read_key()

    @contextmanager
    def raw_mode(self) -> Iterator[None]:
        """Put a real terminal into cbreak mode for the duration of the block."""
        if isinstance(self.source, RawInput):
            with self.source:
                yield
        else:
            yield

    # Output helpers -------------------------------------------------------

    def section(self, title: str) -> None:
        self.console.print()
        self.console.print(Rule(Text(title, style="bold cyan"), align="left", style="dim"))

    def info(self, message: str) -> None:
        self.console.print(f"[dim]{escape(message)}[/dim]")

    def kv(self, key: str, value: str) -> None:
        self.console.print(f"  [dim]{escape(key + ':'):<15}[/dim] {escape(value)}")

    def success(self, message: str) -> None:
        self.console.print(f"[green]{escape(self.glyphs.check)}[/green] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]{escape(self.glyphs.cross)}[/red] {escape(message)}")

    def warn(self, message: str) -> None:
        self.console.print(f"[bold yellow]![/bold yellow] {escape(message)}")

    def dry_run(self, message: str) -> None:
        self.console.print(f"[dim]\\[dry-run][/dim] {escape(message)}")

    def blank(self) -> None:
        self.console.print()
