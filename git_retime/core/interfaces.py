"""Core interfaces and abstract base classes for git-retime."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Dict, Any, Sequence, Tuple

from .models import CommitId, CommitRecord, Epoch


class IVersionControl(ABC):
    """Interface to the version-control system.

    Every mutating method may raise BackendError. Implementations never
    decide anything themselves: ordering, backups and confirmation belong to
    the caller.
    """

    @abstractmethod
    def current_branch(self) -> str:
        """Name of the checked-out branch ('' when detached)."""
        pass

    @abstractmethod
    def head(self) -> Optional[CommitRecord]:
        """HEAD commit, or None for an empty repository."""
        pass

    @abstractmethod
    def unpushed_commits(self) -> List[CommitRecord]:
        """Commits reachable from HEAD but not from upstream, oldest first."""
        pass

    @abstractmethod
    def resolve(self, rev: str) -> CommitId:
        """Resolve a revision to its full, stable identifier."""
        pass

    @abstractmethod
    def has_staged_changes(self) -> bool:
        pass

    @abstractmethod
    def has_unstaged_changes(self) -> bool:
        pass

    @abstractmethod
    def stage_all(self) -> None:
        pass

    @abstractmethod
    def staged_summary(self) -> str:
        """Short diffstat of the staged changes."""
        pass

    @abstractmethod
    def user_identity(self) -> str:
        """Configured identity as 'Name <email>'."""
        pass

    @abstractmethod
    def create_ref(self, name: str, target: str = "HEAD") -> CommitId:
        """Create or move a named reference; returns the commit it points to."""
        pass

    @abstractmethod
    def list_refs(self, prefix: str) -> List[Tuple[str, CommitId, Epoch]]:
        """List (ref name, target, ref date) under a prefix, newest name first."""
        pass

    @abstractmethod
    def reset_hard(self, target: str) -> None:
        pass

    @abstractmethod
    def amend_timestamp(self, epoch: Epoch) -> CommitId:
        """Amend HEAD, changing only author and committer dates."""
        pass

    @abstractmethod
    def commit(self, args: Sequence[str], epoch: Optional[Epoch] = None) -> CommitId:
        """Run a commit; ``epoch`` overrides both author and committer dates."""
        pass

    @abstractmethod
    def push(self, args: Sequence[str], force_with_lease: bool = False) -> None:
        pass

    @abstractmethod
    def rewrite_timestamps(self, pairs: Sequence[Tuple[CommitId, Epoch]],
                           oldest: CommitId) -> CommitId:
        """Rewrite dates over the inclusive range ``oldest..HEAD``.

        Args:
            pairs: (full commit id, new epoch) overrides; commits in the range
                without an override keep their dates
            oldest: First commit of the range

        Returns:
            The new HEAD identifier
        """
        pass


class IConfigManager(ABC):
    """Interface for configuration management."""

    @abstractmethod
    def load_config(self, config_path: Optional[Path] = None) -> Dict[str, Any]:
        """Load configuration from file."""
        pass

    @abstractmethod
    def save_config(self, config: Dict[str, Any], config_path: Optional[Path] = None) -> bool:
        """Save configuration to file."""
        pass

    @abstractmethod
    def get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values."""
        pass

    @abstractmethod
    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        """Validate configuration and return any errors."""
        pass
