"""Rewrite engine: the only place that mutates the repository."""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .errors import BackendError, MutationError, PreconditionError
from .interfaces import IVersionControl
from .models import BackupRef, CommitId, Epoch, RewritePlan, RewriteResult
from . import timeexpr
from ..ui.prompter import Prompter
from ..ui.session import Session


logger = logging.getLogger(__name__)

BACKUP_STAMP_FORMAT = "%Y%m%d-%H%M%S"


class RewriteEngine:
    """Executes amends, commits, pushes and history rewrites safely.

    Every history-altering operation creates a backup reference immediately
    before it mutates anything. In dry-run mode each mutating call prints
    what it would run instead.
    """

    def __init__(self, backend: IVersionControl, prompter: Prompter,
                 config: Optional[Dict[str, Any]] = None, dry_run: bool = False):
        """Initialize rewrite engine.

        Args:
            backend: Version-control backend to operate on
            prompter: UI used for confirmations, progress and reporting
            config: Loaded configuration (defaults are used for missing keys)
            dry_run: Print mutations instead of performing them
        """
        self.backend = backend
        self.prompter = prompter
        self.terminal = prompter.terminal
        self.dry_run = dry_run

        safety = (config or {}).get('safety', {})
        self.protected_branches = set(safety.get(
            'protected_branches', ["main", "master", "develop", "production", "staging"]))
        self.backup_prefix = safety.get('backup_ref_prefix', 'refs/retime-backup').rstrip('/')
        self.confirm_protected = safety.get('confirm_protected', True)

        logger.debug(f"RewriteEngine initialized (dry_run={dry_run})")

    # Protected branches ---------------------------------------------------------

    def is_protected(self, branch: Optional[str] = None) -> bool:
        name = self.backend.current_branch() if branch is None else branch
        return name in self.protected_branches

    def check_protected_branch(self, session: Session, force: bool = True) -> bool:
        """Ask for explicit confirmation before pushing to a protected branch.

        Returns:
            True when it is fine to proceed
        """
        branch = self.backend.current_branch()
        if not self.confirm_protected or not self.is_protected(branch):
            return True

        self.terminal.warn(f"You are on protected branch: {branch}")
        question = f"Force push to {branch}?" if force else f"Push to {branch}?"
        return self.prompter.confirm(session, question)

    # Backups --------------------------------------------------------------------

    def backup_name(self, label: str, now: Optional[float] = None) -> str:
        stamp = datetime.fromtimestamp(time.time() if now is None else now)
        return f"{self.backup_prefix}/{stamp.strftime(BACKUP_STAMP_FORMAT)}-{label}"

    def create_backup(self, label: str) -> BackupRef:
        """Point a new backup reference at HEAD.

        Args:
            label: Short description of the operation about to run

        Returns:
            The created reference (in dry-run, the one that would be created)

        Raises:
            MutationError: If the reference cannot be created
        """
        now = time.time()
        name = self.backup_name(label, now)

        if self.dry_run:
            self.terminal.dry_run(f"git update-ref {name} HEAD")
            return BackupRef(name=name, target=self.backend.resolve("HEAD"), created=int(now))

        try:
            target = self.backend.create_ref(name, "HEAD")
        except BackendError as e:
            raise MutationError(f"Failed to create backup {name}: {e}", stage="backup")

        logger.info(f"Backup created: {name}")
        return BackupRef(name=name, target=target, created=int(now))

    def list_backups(self) -> List[BackupRef]:
        """Return backup references, newest first."""
        backups = []
        for name, target, epoch in self.backend.list_refs(self.backup_prefix + "/"):
            leaf = name.rsplit("/", 1)[-1]
            try:
                created = int(datetime.strptime(leaf[:15], BACKUP_STAMP_FORMAT).timestamp())
            except ValueError:
                created = epoch
            backups.append(BackupRef(name=name, target=target, created=created))
        return sorted(backups, key=lambda b: b.created, reverse=True)

    def restore_backup(self, ref: str, session: Session) -> bool:
        """Hard-reset the current branch to a backup after confirmation.

        Args:
            ref: Full reference name, or its name below the backup prefix
            session: Session used for the confirmation

        Returns:
            True if the branch was reset (or would be, in dry-run)

        Raises:
            PreconditionError: If the backup does not exist
            MutationError: If the reset fails
        """
        name = ref if ref.startswith("refs/") else f"{self.backup_prefix}/{ref}"
        known = {backup.name for backup in self.list_backups()}
        if name not in known:
            raise PreconditionError(f"Backup not found: {name}")

        self.terminal.warn(f"Restoring from backup: {name}")
        if not self.prompter.confirm(session, "This will discard current HEAD. Continue?"):
            return False

        if self.dry_run:
            self.terminal.dry_run(f"git reset --hard {name}")
            return True

        try:
            self.backend.reset_hard(name)
        except BackendError as e:
            raise MutationError(f"Failed to restore {name}: {e}", stage="restore")

        logger.info(f"Restored HEAD from {name}")
        return True

    # Mutations ------------------------------------------------------------------

    def execute(self, plan: RewritePlan, label: str, validate: bool = True,
                min_gap: int = 0) -> RewriteResult:
        """Rewrite the timestamps of every commit in ``plan`` in one operation.

        Args:
            plan: Commits (oldest first) and their new timestamps
            label: Backup label, e.g. ``push-rewrite``
            validate: Check the plan is strictly increasing before running it
            min_gap: Minimum seconds between consecutive commits when validating

        Returns:
            Result naming the backup and the new HEAD

        Raises:
            PreconditionError: If a commit cannot be resolved or the plan is
                out of order
            MutationError: If the backup or the rewrite fails
        """
        if not len(plan):
            return RewriteResult(success=True, rewritten=0, backup=None, dry_run=self.dry_run)

        # Resolve everything before the first mutation
        try:
            pairs = [(self.backend.resolve(cid), epoch) for cid, epoch in plan.pairs()]
        except BackendError as e:
            raise PreconditionError(str(e))

        if validate:
            errors = plan.validate(min_gap)
            if errors:
                raise PreconditionError("Rewrite plan is not in chronological order: "
                                        + "; ".join(errors))

        backup = self.create_backup(label)
        self.terminal.info(f"Backup: {backup.name}")

        if self.dry_run:
            self.terminal.dry_run(f"Would rewrite {len(plan)} commits")
            for entry in plan:
                self.terminal.dry_run(f"  {entry.commit.id} -> {timeexpr.format_git(entry.new_epoch)}")
            return RewriteResult(success=True, rewritten=len(plan), backup=backup, dry_run=True)

        self.prompter.spinner_start(f"Rewriting {len(plan)} commits...")
        try:
            new_head = self.backend.rewrite_timestamps(pairs, pairs[0][0])
        except BackendError as e:
            self.prompter.spinner_stop()
            logger.error(f"Rewrite failed: {e}")
            raise MutationError(f"Failed to rewrite commits from {plan.oldest.id}: {e}",
                                stage="rewrite", backup_ref=backup.name)
        finally:
            self.prompter.spinner_stop()

        self.terminal.success(f"Rewrote {len(plan)} commits")
        return RewriteResult(success=True, rewritten=len(plan), backup=backup, new_head=new_head)

    def amend(self, epoch: Epoch) -> RewriteResult:
        """Back up HEAD, then amend only its author and committer dates."""
        backup = self.create_backup("amend")
        date = timeexpr.format_git(epoch)

        if self.dry_run:
            self.terminal.dry_run(f"git commit --amend --no-edit --date='{date}'")
            return RewriteResult(success=True, rewritten=1, backup=backup, dry_run=True)

        try:
            new_head = self.backend.amend_timestamp(epoch)
        except BackendError as e:
            raise MutationError(f"Failed to amend commit: {e}", stage="amend",
                                backup_ref=backup.name)

        self.terminal.success("Commit amended")
        self.terminal.kv("New hash", new_head[:7])
        return RewriteResult(success=True, rewritten=1, backup=backup, new_head=new_head)

    def stage_all(self) -> None:
        if self.dry_run:
            self.terminal.dry_run("git add -A")
            return
        try:
            self.backend.stage_all()
        except BackendError as e:
            raise MutationError(f"Failed to stage changes: {e}", stage="stage")

    def commit(self, args: Sequence[str], epoch: Optional[Epoch] = None) -> Optional[CommitId]:
        """Create a commit; ``epoch`` sets both author and committer dates."""
        if self.dry_run:
            prefix = ""
            if epoch is not None:
                date = timeexpr.format_git(epoch)
                prefix = f"GIT_AUTHOR_DATE='{date}' GIT_COMMITTER_DATE='{date}' "
            self.terminal.dry_run(f"{prefix}git commit {' '.join(args)}".rstrip())
            return None

        try:
            return self.backend.commit(args, epoch)
        except BackendError as e:
            raise MutationError(f"Commit failed: {e}", stage="commit")

    def push(self, args: Sequence[str], force_with_lease: bool = False) -> None:
        """Push, never with a bare force; rewritten history uses --force-with-lease."""
        if self.dry_run:
            flag = "--force-with-lease " if force_with_lease else ""
            self.terminal.dry_run(f"git push {flag}{' '.join(args)}".rstrip())
            return

        try:
            self.backend.push(args, force_with_lease=force_with_lease)
        except BackendError as e:
            raise MutationError(f"Push failed: {e}", stage="push")
