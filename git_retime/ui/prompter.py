"""Entry point of the UI kit: one object exposing every component."""

import logging
from typing import Optional, Sequence, Set

from ..core.models import Epoch
from .components import (
    Confirm, NativeSelect, SelectRenderer, TextInput, TimestampInput, Validator
)
from .fuzzy import FuzzyPicker, FzfSelect
from .session import Session
from .spinner import Spinner
from .terminal import Terminal


logger = logging.getLogger(__name__)


class Prompter:
    """Runs components against a terminal.

    Args:
        terminal: Terminal to draw on and read keys from
        picker: Optional fuzzy picker; used for selects when it is installed
            and both stdin and stdout are terminals
        use_fzf: Allow the fuzzy picker at all
        show_tabs: Draw the session's tab bar above components
    """

    def __init__(self, terminal: Terminal, picker: Optional[FuzzyPicker] = None,
                 use_fzf: bool = True, show_tabs: bool = True):
        self.terminal = terminal
        self.picker = picker
        self.use_fzf = use_fzf
        self.show_tabs = show_tabs
        self.spinner = Spinner(terminal.console)

    def selector(self) -> SelectRenderer:
        """Choose the select implementation for this call."""
        if self.use_fzf and self.picker is not None \
                and self.picker.available() and self.picker.interactive():
            logger.debug("Using fzf for selection")
            return FzfSelect(self.terminal, self.picker)
        return NativeSelect(self.terminal, show_tabs=self.show_tabs)

    def multi_select(self, session: Session, key: str, prompt: str, options: Sequence[str],
                     descriptions: Optional[Sequence[str]] = None,
                     defaults: Optional[Sequence[bool]] = None) -> Set[int]:
        return self.selector().multi_select(session, key, prompt, options,
                                            descriptions or [], defaults or [])

    def single_select(self, session: Session, key: str, prompt: str, options: Sequence[str],
                      descriptions: Optional[Sequence[str]] = None, initial: int = 0) -> int:
        return self.selector().single_select(session, key, prompt, options,
                                             descriptions or [], initial)

    def text_input(self, session: Session, key: str, prompt: str, default: str = "",
                   validator: Optional[Validator] = None) -> str:
        return TextInput(self.terminal, session, key, prompt, default, validator,
                         show_tabs=self.show_tabs).run()

    def timestamp_input(self, session: Session, key: str, prompt: str, base_epoch: Epoch) -> Epoch:
        return TimestampInput(self.terminal, session, key, prompt, base_epoch,
                              show_tabs=self.show_tabs).run()

    def confirm(self, session: Session, question: str, default: bool = False) -> bool:
        return Confirm(self.terminal, session, question, default).run()

    def spinner_start(self, message: str) -> None:
        self.spinner.start(message)

    def spinner_stop(self) -> None:
        self.spinner.stop()
