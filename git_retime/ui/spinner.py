"""Indefinite spinner shown while a blocking operation runs."""

from typing import Optional

from rich.console import Console
from rich.status import Status


class Spinner:
    """Wraps rich's Status, whose refresh thread animates the spinner.

    ``stop()`` is safe to call any number of times; it returns only once the
    animation thread has finished, so later output never interleaves with it.
    """

    def __init__(self, console: Console, spinner: str = "dots"):
        self.console = console
        self.spinner = spinner
        self._status: Optional[Status] = None

    @property
    def running(self) -> bool:
        return self._status is not None

    def start(self, message: str) -> None:
        if self._status is not None:
            self._status.update(message)
            return
        self._status = Status(message, console=self.console, spinner=self.spinner)
        self._status.start()

    def stop(self) -> None:
        status, self._status = self._status, None
        if status is not None:
            status.stop()
