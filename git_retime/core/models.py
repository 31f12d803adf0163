"""Core data models and type definitions for git-retime."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple


# Type aliases for better readability
Epoch = int
CommitId = str


class Precision(Enum):
    """Granularity at which a time expression was written."""
    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    FULL = "full"


class FlowOutcome(Enum):
    """Result of an interactive flow, mapped to a process exit code."""
    SUCCESS = 0
    FAILED = 1
    CANCELLED = 130

    @property
    def exit_code(self) -> int:
        return self.value


class PushOperation(Enum):
    """Operations offered by the interactive push flow, in menu order."""
    PUSH_AS_IS = "push-as-is"
    REWRITE_INDIVIDUAL = "rewrite"
    BATCH_OFFSET = "offset"
    APPLY_PRESET = "preset"


@dataclass(frozen=True)
class CadencePreset:
    """Named commit cadence: a random gap range and an optional hour window.

    The hour window is ``(start, end)`` in local hours, end exclusive. When
    ``end < start`` the window wraps past midnight.
    """
    name: str
    gap_min: int
    gap_max: int
    hour_window: Optional[Tuple[int, int]] = None
    description: str = ""

    def __post_init__(self):
        if self.gap_min < 0 or self.gap_max < self.gap_min:
            raise ValueError(f"Invalid gap range for preset '{self.name}': "
                             f"{self.gap_min}-{self.gap_max}")
        if self.hour_window is not None:
            start, end = self.hour_window
            if not (0 <= start <= 23 and 0 <= end <= 23) or start == end:
                raise ValueError(f"Invalid hour window for preset '{self.name}': {start}-{end}")


@dataclass(frozen=True)
class CommitRecord:
    """Read-only snapshot of a commit taken at flow start."""
    id: CommitId
    subject: str
    epoch: Epoch
    full_id: Optional[CommitId] = None


@dataclass
class PlanEntry:
    """One commit of a rewrite plan and its new timestamp."""
    commit: CommitRecord
    new_epoch: Epoch

    @property
    def delta(self) -> int:
        return self.new_epoch - self.commit.epoch


@dataclass
class RewritePlan:
    """Ordered mapping of commits (oldest first) to new timestamps."""
    entries: List[PlanEntry] = field(default_factory=list)

    def add(self, commit: CommitRecord, new_epoch: Epoch) -> None:
        self.entries.append(PlanEntry(commit=commit, new_epoch=new_epoch))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[PlanEntry]:
        return iter(self.entries)

    @property
    def oldest(self) -> CommitRecord:
        return self.entries[0].commit

    def new_epochs(self) -> List[Epoch]:
        return [entry.new_epoch for entry in self.entries]

    def pairs(self) -> List[Tuple[CommitId, Epoch]]:
        """Return (identifier, new epoch) pairs, preferring full identifiers."""
        return [(entry.commit.full_id or entry.commit.id, entry.new_epoch)
                for entry in self.entries]

    def validate(self, min_gap: int = 0) -> List[str]:
        """Check the chronological invariant.

        Args:
            min_gap: Required seconds between consecutive new timestamps

        Returns:
            List of human-readable violations (empty when the plan is valid)
        """
        errors = []
        for prev, cur in zip(self.entries, self.entries[1:]):
            if cur.new_epoch <= prev.new_epoch:
                errors.append(f"{cur.commit.id} is not after {prev.commit.id}")
            elif cur.new_epoch - prev.new_epoch < min_gap:
                errors.append(f"{cur.commit.id} is less than {min_gap}s after {prev.commit.id}")
        return errors


@dataclass(frozen=True)
class BackupRef:
    """Named pointer to HEAD created before a destructive rewrite."""
    name: str
    target: CommitId
    created: Epoch


@dataclass
class RewriteResult:
    """Result of executing a rewrite plan."""
    success: bool
    rewritten: int
    backup: Optional[BackupRef]
    new_head: Optional[CommitId] = None
    dry_run: bool = False
