"""Optional fzf delegate for the select components."""

import logging
import shutil
import subprocess
import sys
from typing import List, Optional, Sequence, Set

from rich.markup import escape

from ..core.errors import InterviewCancelled
from .components import SelectRenderer
from .session import Session
from .terminal import Terminal


logger = logging.getLogger(__name__)


class FuzzyPicker:
    """Thin wrapper around the ``fzf`` executable."""

    def __init__(self, executable: str = "fzf", stdin=None, stdout=None):
        self.executable = executable
        self._stdin = stdin
        self._stdout = stdout

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def interactive(self) -> bool:
        stdin = self._stdin or sys.stdin
        stdout = self._stdout or sys.stdout
        try:
            return stdin.isatty() and stdout.isatty()
        except (AttributeError, ValueError):
            return False

    def pick(self, lines: Sequence[str], prompt: str, header: str,
             multi: bool = False) -> Optional[List[str]]:
        """Run fzf over ``lines``.

        Returns:
            The chosen lines, or None when the user aborted
        """
        cmd = [self.executable, "--ansi", f"--prompt={prompt}", f"--header={header}",
               "--delimiter=\t", "--preview-window=hidden"]
        if multi:
            cmd += ["--multi", "--bind", "tab:toggle+down"]

        logger.debug(f"Running {' '.join(cmd)}")
        result = subprocess.run(cmd, input="\n".join(lines) + "\n", stdout=subprocess.PIPE,
                                text=True)

        # fzf exits 1 for "no match" and 130 for Esc/Ctrl-C
        if result.returncode != 0 or not result.stdout.strip():
            return None
        return [line for line in result.stdout.splitlines() if line]


def option_lines(options: Sequence[str], descriptions: Sequence[str]) -> List[str]:
    lines = []
    for i, option in enumerate(options):
        if i < len(descriptions) and descriptions[i]:
            lines.append(f"{option}\t{descriptions[i]}")
        else:
            lines.append(option)
    return lines


class FzfSelect(SelectRenderer):
    """Select components rendered through fzf; same contract as NativeSelect."""

    def __init__(self, terminal: Terminal, picker: FuzzyPicker):
        self.terminal = terminal
        self.picker = picker

    def _indices(self, lines: List[str], chosen: List[str]) -> List[int]:
        return [lines.index(line) for line in chosen if line in lines]

    def multi_select(self, session: Session, key: str, prompt: str, options, descriptions,
                     defaults) -> Set[int]:
        lines = option_lines(options, descriptions)
        self.terminal.console.print(f"[bold]{escape(prompt)}[/bold]")
        chosen = self.picker.pick(lines, "Select (Tab=toggle): ",
                                  "Tab to toggle, Enter to confirm", multi=True)
        if chosen is None:
            session.cancel()
            raise InterviewCancelled(key)

        result = set(self._indices(lines, chosen))
        session.set_answer(key, result)
        return result

    def single_select(self, session: Session, key: str, prompt: str, options, descriptions,
                      initial: int) -> int:
        lines = option_lines(options, descriptions)
        self.terminal.console.print(f"[bold]{escape(prompt)}[/bold]")
        chosen = self.picker.pick(lines, "Select: ", "Enter to select")
        indices = self._indices(lines, chosen or [])
        if not indices:
            session.cancel()
            raise InterviewCancelled(key)

        session.set_answer(key, indices[0])
        return indices[0]
