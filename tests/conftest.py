"""Test configuration and fixtures."""

import io
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from rich.console import Console

from git_retime.core.errors import BackendError
from git_retime.core.interfaces import IVersionControl
from git_retime.core.models import CommitRecord
from git_retime.ui import Prompter, StreamInput, Terminal


# Key sequences as a terminal sends them
ENTER = "\r"
ESC = "\x1b"
UP = "\x1b[A"
DOWN = "\x1b[B"
RIGHT = "\x1b[C"
LEFT = "\x1b[D"
HOME = "\x1b[H"
END = "\x1b[F"
SPACE = " "
BACKSPACE = "\x7f"


def make_terminal(keys: str = "") -> Terminal:
    """Terminal that reads ``keys`` and renders into a string buffer."""
    console = Console(file=io.StringIO(), force_terminal=False, width=200, highlight=False)
    return Terminal(console, StreamInput(io.StringIO(keys)))


def make_prompter(keys: str = "") -> Prompter:
    return Prompter(make_terminal(keys), picker=None, use_fzf=False)


def output_of(terminal: Terminal) -> str:
    return terminal.console.file.getvalue()


class FakeBackend(IVersionControl):
    """In-memory stand-in for a git repository.

    Every mutating call is recorded in ``calls``; names listed in ``fail``
    raise BackendError instead.
    """

    def __init__(self, commits: Optional[List[CommitRecord]] = None, branch: str = "feature",
                 staged: bool = True, unstaged: bool = False):
        self.commits = list(commits or [])
        self.branch = branch
        self.staged = staged
        self.unstaged = unstaged
        self.refs: Dict[str, str] = {}
        self.calls: List[Tuple] = []
        self.fail: set = set()
        self.head_id = self.commits[-1].full_id if self.commits else None

    def _record(self, name: str, *args) -> None:
        if name in self.fail:
            raise BackendError(f"{name} rejected")
        self.calls.append((name,) + args)

    def called(self, name: str) -> List[Tuple]:
        return [call for call in self.calls if call[0] == name]

    def current_branch(self) -> str:
        return self.branch

    def head(self) -> Optional[CommitRecord]:
        return self.commits[-1] if self.commits else None

    def unpushed_commits(self) -> List[CommitRecord]:
        return list(self.commits)

    def resolve(self, rev: str) -> str:
        if rev == "HEAD":
            if self.head_id is None:
                raise BackendError("HEAD does not exist")
            return self.head_id
        for commit in self.commits:
            if rev in (commit.id, commit.full_id):
                return commit.full_id
        if rev in self.refs:
            return self.refs[rev]
        raise BackendError(f"Unknown revision {rev}")

    def has_staged_changes(self) -> bool:
        return self.staged

    def has_unstaged_changes(self) -> bool:
        return self.unstaged

    def stage_all(self) -> None:
        self._record("stage_all")
        self.staged, self.unstaged = True, False

    def staged_summary(self) -> str:
        return " file.txt | 2 +-\n 1 file changed" if self.staged else ""

    def user_identity(self) -> str:
        return "Test User <test@example.com>"

    def create_ref(self, name: str, target: str = "HEAD") -> str:
        sha = self.resolve(target)
        self._record("create_ref", name, sha)
        self.refs[name] = sha
        return sha

    def list_refs(self, prefix: str) -> List[Tuple[str, str, int]]:
        return [(name, sha, 0) for name, sha in sorted(self.refs.items(), reverse=True)
                if name.startswith(prefix)]

    def reset_hard(self, target: str) -> None:
        self._record("reset_hard", target)

    def amend_timestamp(self, epoch: int) -> str:
        self._record("amend_timestamp", epoch)
        self.head_id = "a" * 40
        return self.head_id

    def commit(self, args: Sequence[str], epoch: Optional[int] = None) -> str:
        self._record("commit", list(args), epoch)
        self.head_id = "c" * 40
        return self.head_id

    def push(self, args: Sequence[str], force_with_lease: bool = False) -> None:
        self._record("push", list(args), force_with_lease)

    def rewrite_timestamps(self, pairs, oldest) -> str:
        self._record("rewrite_timestamps", list(pairs), oldest)
        self.head_id = "f" * 40
        return self.head_id


def make_commits(epochs: Sequence[int]) -> List[CommitRecord]:
    commits = []
    for i, epoch in enumerate(epochs):
        full_id = f"{i + 1:x}" * 40
        commits.append(CommitRecord(id=full_id[:7], subject=f"Commit {i + 1}",
                                    epoch=epoch, full_id=full_id))
    return commits


@pytest.fixture
def temp_project():
    """Create a temporary project directory."""
    temp_dir = Path(tempfile.mkdtemp())

    try:
        yield temp_dir
    finally:
        shutil.rmtree(temp_dir)


@pytest.fixture
def git_repo(temp_project):
    """A git repository with three commits on branch ``feature``."""
    git = pytest.importorskip("git")
    if shutil.which("git") is None:
        pytest.skip("git executable not available")

    repo = git.Repo.init(str(temp_project))
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")
        writer.set_value("commit", "gpgsign", "false")
    repo.git.checkout("-b", "feature")

    for i, epoch in enumerate((1700000000, 1700003600, 1700007200)):
        path = temp_project / f"file{i}.txt"
        path.write_text(f"content {i}\n")
        repo.git.add(str(path))
        date = f"{epoch} +0000"
        with repo.git.custom_environment(GIT_AUTHOR_DATE=date, GIT_COMMITTER_DATE=date):
            repo.git.commit("-m", f"Commit {i + 1}")

    return repo
