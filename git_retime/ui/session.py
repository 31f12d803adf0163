"""Interview session state shared by the UI components of one flow."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TabStatus(Enum):
    PENDING = "pending"
    CURRENT = "current"
    COMPLETED = "completed"


@dataclass
class Tab:
    name: str
    status: TabStatus = TabStatus.PENDING


@dataclass
class Session:
    """State of one interview: tab progress, collected answers, cancellation.

    A session is created per flow and passed explicitly to every component,
    so several sessions can coexist (e.g. in one test process).
    """
    tabs: List[Tab] = field(default_factory=list)
    answers: Dict[str, Any] = field(default_factory=dict)
    cancelled: bool = False

    @classmethod
    def with_tabs(cls, *names: str) -> "Session":
        session = cls()
        for name in names:
            session.add_tab(name)
        return session

    def add_tab(self, name: str) -> None:
        self.tabs.append(Tab(name))

    def _tab(self, name: str) -> Tab:
        for tab in self.tabs:
            if tab.name == name:
                return tab
        raise KeyError(f"No tab named {name!r}")

    def activate_tab(self, name: str) -> None:
        """Make ``name`` the current tab; a previously current tab goes back to pending."""
        for tab in self.tabs:
            if tab.status is TabStatus.CURRENT:
                tab.status = TabStatus.PENDING
        self._tab(name).status = TabStatus.CURRENT

    def complete_tab(self, name: str) -> None:
        self._tab(name).status = TabStatus.COMPLETED

    @property
    def current_tab(self) -> Optional[Tab]:
        return next((tab for tab in self.tabs if tab.status is TabStatus.CURRENT), None)

    def set_answer(self, key: str, value: Any) -> None:
        self.answers[key] = value

    def get_answer(self, key: str, default: Any = None) -> Any:
        return self.answers.get(key, default)

    def cancel(self) -> None:
        self.cancelled = True

    def reset(self) -> None:
        self.answers.clear()
        self.cancelled = False
        for tab in self.tabs:
            tab.status = TabStatus.PENDING
