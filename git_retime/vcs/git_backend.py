"""GitPython implementation of the version-control interface."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import git
from git import Actor, Commit
from git.exc import BadName, GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from git.objects.util import altz_to_utctz_str

from ..core.errors import BackendError, PreconditionError
from ..core.interfaces import IVersionControl
from ..core.models import CommitId, CommitRecord, Epoch
from ..core import timeexpr


logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 7


def _record(commit: Commit) -> CommitRecord:
    return CommitRecord(
        id=commit.hexsha[:SHORT_ID_LENGTH],
        subject=commit.summary if isinstance(commit.summary, str) else commit.summary.decode(),
        epoch=commit.authored_date,
        full_id=commit.hexsha,
    )


class GitBackend(IVersionControl):
    """Version-control backend for a local git repository.

    Args:
        path: Any directory inside the working tree

    Raises:
        PreconditionError: If ``path`` is not inside a git repository
    """

    def __init__(self, path: Optional[Path] = None):
        try:
            self.repo = git.Repo(str(path or Path.cwd()), search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise PreconditionError(f"Not a git repository: {path or Path.cwd()}")
        self.root = Path(self.repo.working_dir)
        logger.debug(f"Git repository found at {self.root}")

    # Queries ----------------------------------------------------------------

    def current_branch(self) -> str:
        try:
            return self.repo.active_branch.name
        except TypeError:
            # Detached HEAD
            return ""

    def head(self) -> Optional[CommitRecord]:
        if not self.repo.head.is_valid():
            return None
        return _record(self.repo.head.commit)

    def upstream(self) -> Optional[str]:
        try:
            return self.repo.git.rev_parse("--abbrev-ref", "--symbolic-full-name", "@{u}")
        except GitCommandError:
            return None

    def unpushed_commits(self) -> List[CommitRecord]:
        if not self.repo.head.is_valid():
            return []

        upstream = self.upstream()
        rev = f"{upstream}..HEAD" if upstream else "HEAD"
        logger.debug(f"Listing unpushed commits in {rev}")
        try:
            return [_record(c) for c in self.repo.iter_commits(rev, reverse=True)]
        except GitCommandError as e:
            raise BackendError(f"Failed to list commits in {rev}: {e}")

    def resolve(self, rev: str) -> CommitId:
        try:
            return self.repo.commit(rev).hexsha
        except (BadName, ValueError, GitCommandError) as e:
            raise BackendError(f"Unknown revision {rev}: {e}")

    def has_staged_changes(self) -> bool:
        try:
            self.repo.git.diff("--cached", "--quiet")
            return False
        except GitCommandError as e:
            if e.status == 1:
                return True
            raise BackendError(f"Failed to inspect the index: {e}")

    def has_unstaged_changes(self) -> bool:
        return self.repo.is_dirty(index=False, working_tree=True, untracked_files=True)

    def staged_summary(self) -> str:
        return self.repo.git.diff("--cached", "--stat")

    def user_identity(self) -> str:
        reader = self.repo.config_reader()
        name = reader.get_value("user", "name", "")
        email = reader.get_value("user", "email", "")
        return f"{name} <{email}>"

    def list_refs(self, prefix: str) -> List[Tuple[str, CommitId, Epoch]]:
        output = self.repo.git.for_each_ref(
            "--sort=-refname", "--format=%(refname)%09%(objectname)%09%(creatordate:unix)", prefix
        )
        refs = []
        for line in output.splitlines():
            name, target, created = line.split("\t")
            refs.append((name, target, int(created or 0)))
        return refs

    # Mutations ----------------------------------------------------------------

    def stage_all(self) -> None:
        self._git("add", "-A")

    def create_ref(self, name: str, target: str = "HEAD") -> CommitId:
        sha = self.resolve(target)
        self._git("update-ref", name, sha)
        logger.info(f"Created ref {name} -> {sha[:SHORT_ID_LENGTH]}")
        return sha

    def reset_hard(self, target: str) -> None:
        self._git("reset", "--hard", target)

    def amend_timestamp(self, epoch: Epoch) -> CommitId:
        date = timeexpr.format_git(epoch)
        # --only without paths leaves anything already staged out of the amend
        with self.repo.git.custom_environment(GIT_AUTHOR_DATE=date, GIT_COMMITTER_DATE=date):
            self._git("commit", "--amend", "--only", "--no-edit", "--no-verify", f"--date={date}")
        return self.repo.head.commit.hexsha

    def commit(self, args: Sequence[str], epoch: Optional[Epoch] = None) -> CommitId:
        env = {}
        if epoch is not None:
            date = timeexpr.format_git(epoch)
            env = {"GIT_AUTHOR_DATE": date, "GIT_COMMITTER_DATE": date}
        # Runs attached to the terminal so an editor can open for the message
        self._run_attached(["commit", *args], env)
        return self.repo.head.commit.hexsha

    def push(self, args: Sequence[str], force_with_lease: bool = False) -> None:
        cmd = ["push"]
        if force_with_lease:
            cmd.append("--force-with-lease")
        self._run_attached(cmd + list(args))

    def rewrite_timestamps(self, pairs: Sequence[Tuple[CommitId, Epoch]],
                           oldest: CommitId) -> CommitId:
        """Recreate ``oldest..HEAD`` with new author/committer dates.

        Trees, messages, identities and timezones are kept; only the dates of
        commits named in ``pairs`` change (descendants get new parents). The
        branch moves only after every commit has been written, with a
        compare-and-swap against the old HEAD.
        """
        overrides: Dict[CommitId, Epoch] = {self.resolve(sha): epoch for sha, epoch in pairs}
        first = self.repo.commit(self.resolve(oldest))
        old_head = self.repo.head.commit

        rev = f"{first.hexsha}^..{old_head.hexsha}" if first.parents else old_head.hexsha
        commits = list(self.repo.iter_commits(rev, reverse=True, topo_order=True))

        in_range = {c.hexsha for c in commits}
        missing = [sha[:SHORT_ID_LENGTH] for sha in overrides if sha not in in_range]
        if first.hexsha not in in_range or missing:
            raise BackendError(f"Commits outside {first.hexsha[:SHORT_ID_LENGTH]}..HEAD: "
                               f"{', '.join(missing) or first.hexsha[:SHORT_ID_LENGTH]}")

        rewritten: Dict[CommitId, CommitId] = {}
        for commit in commits:
            epoch = overrides.get(commit.hexsha)
            author_date = self._date(epoch if epoch is not None else commit.authored_date,
                                     commit.author_tz_offset)
            commit_date = self._date(epoch if epoch is not None else commit.committed_date,
                                     commit.committer_tz_offset)
            parents = [self.repo.commit(rewritten.get(p.hexsha, p.hexsha)) for p in commit.parents]

            try:
                new_commit = Commit.create_from_tree(
                    self.repo, commit.tree, commit.message, parent_commits=parents, head=False,
                    author=Actor(commit.author.name, commit.author.email),
                    committer=Actor(commit.committer.name, commit.committer.email),
                    author_date=author_date, commit_date=commit_date,
                )
            except (GitCommandError, ValueError) as e:
                raise BackendError(f"Failed to rewrite {commit.hexsha[:SHORT_ID_LENGTH]}: {e}")

            rewritten[commit.hexsha] = new_commit.hexsha
            logger.debug(f"{commit.hexsha[:SHORT_ID_LENGTH]} -> {new_commit.hexsha[:SHORT_ID_LENGTH]}")

        new_head = rewritten[old_head.hexsha]
        branch = self.current_branch()
        ref = f"refs/heads/{branch}" if branch else "HEAD"
        extra = [] if branch else ["--no-deref"]
        self._git("update-ref", *extra, "-m", "git-retime: rewrite timestamps",
                  ref, new_head, old_head.hexsha)
        logger.info(f"Rewrote {len(commits)} commits, HEAD is now {new_head[:SHORT_ID_LENGTH]}")
        return new_head

    # Helpers ------------------------------------------------------------------

    @staticmethod
    def _date(epoch: Epoch, tz_offset: int) -> str:
        return f"{epoch} {altz_to_utctz_str(tz_offset)}"

    def _git(self, *args: str) -> str:
        logger.debug(f"git {' '.join(args)}")
        try:
            return self.repo.git.execute(["git", *args])
        except GitCommandError as e:
            raise BackendError(f"git {args[0]} failed: {e.stderr.strip() if e.stderr else e}")

    def _run_attached(self, args: List[str], env: Optional[Dict[str, str]] = None) -> None:
        logger.debug(f"git {' '.join(args)}")
        executable = git.Git.GIT_PYTHON_GIT_EXECUTABLE or "git"
        result = subprocess.run([executable, *args], cwd=str(self.root),
                                env={**os.environ, **(env or {})})
        if result.returncode != 0:
            raise BackendError(f"git {args[0]} exited with status {result.returncode}")
