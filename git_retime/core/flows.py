"""Interactive flows: amend, commit and push.

Each flow follows the same shape: select what to change, collect the new
values, show a preview and ask for confirmation, then hand the mutation to
the RewriteEngine. Flows return a FlowOutcome instead of raising; failures
are reported on the terminal where they happen.
"""

import logging
import random
import re
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from rich.markup import escape

from .errors import BackendError, InterviewCancelled, MutationError, PreconditionError
from .models import CommitRecord, FlowOutcome, Precision, PushOperation, RewritePlan
from .presets import PresetRegistry
from .rewrite_engine import RewriteEngine
from . import timeexpr
from ..ui.prompter import Prompter
from ..ui.session import Session


logger = logging.getLogger(__name__)

AUTHOR_RE = re.compile(r'^[^<>]+\s<[^<>\s]+>$')

COMMIT_OPTIONS = ["Message", "Timestamp", "Author", "Sign (GPG)"]
COMMIT_DESCRIPTIONS = [
    "Edit commit message",
    "Override author/committer date",
    "Change author identity",
    "GPG sign the commit",
]
COMMIT_DEFAULTS = [True, False, False, False]

PUSH_OPERATIONS = [
    (PushOperation.PUSH_AS_IS, "Push as-is", "Push without modifications"),
    (PushOperation.REWRITE_INDIVIDUAL, "Rewrite timestamps", "Interactively set each commit's timestamp"),
    (PushOperation.BATCH_OFFSET, "Batch offset", "Shift all commits by same amount"),
    (PushOperation.APPLY_PRESET, "Apply preset pattern", "Auto-generate realistic timing"),
]


def validate_author(value: str) -> Optional[str]:
    if not AUTHOR_RE.match(value.strip()):
        return "Author must look like 'Name <email>'"
    return None


def validate_offset(value: str, epochs: Sequence[int] = ()) -> Optional[str]:
    try:
        timeexpr.batch_offset(value, epochs)
    except ValueError:
        return "Invalid offset format (e.g. -2h, +30m, 1d2h)"
    return None


class _Flow:
    """Shared plumbing: configuration, reporting and outcome mapping."""

    def __init__(self, engine: RewriteEngine, prompter: Prompter,
                 config: Optional[Dict[str, Any]] = None, rng: Optional[random.Random] = None):
        self.engine = engine
        self.backend = engine.backend
        self.prompter = prompter
        self.terminal = prompter.terminal
        self.rng = rng

        config = config or {}
        timestamps = config.get('timestamps', {})
        self.min_gap = timestamps.get('min_gap_seconds', timeexpr.DEFAULT_MIN_GAP)
        self.presets = PresetRegistry(config.get('presets') or {},
                                      timestamps.get('default_preset', 'irl'))

    def _guard(self, body: Callable[[], FlowOutcome]) -> FlowOutcome:
        try:
            return body()
        except InterviewCancelled as e:
            logger.debug(f"Interview cancelled at '{e.key}'")
            self.terminal.info("Cancelled")
            return FlowOutcome.CANCELLED
        except PreconditionError as e:
            self.terminal.error(str(e))
            return FlowOutcome.FAILED
        except MutationError as e:
            self.terminal.error(str(e))
            if e.backup_ref:
                self.terminal.info(f"Your backup is preserved: {e.backup_ref}")
                self.terminal.info(f"Recover with: git reset --hard {e.backup_ref}")
            return FlowOutcome.FAILED
        except BackendError as e:
            self.terminal.error(f"git: {e}")
            return FlowOutcome.FAILED

    @staticmethod
    def _step(session: Session, tab: str) -> None:
        if session.current_tab is not None:
            session.complete_tab(session.current_tab.name)
        session.activate_tab(tab)

    def _now(self) -> int:
        return int(time.time())


class CommitFlow(_Flow):
    """Amend HEAD's timestamp, or build a new commit interactively."""

    def run_amend(self) -> FlowOutcome:
        return self._guard(self._amend)

    def run(self, passthrough: Sequence[str] = ()) -> FlowOutcome:
        return self._guard(lambda: self._commit(list(passthrough)))

    def _amend(self) -> FlowOutcome:
        head = self.backend.head()
        if head is None:
            raise PreconditionError("No commits in repository")

        session = Session.with_tabs("Timestamp", "Confirm")
        self.terminal.section("Amend Last Commit")
        self.terminal.kv("Commit", head.id)
        self.terminal.kv("Message", head.subject)
        self.terminal.kv("Current", timeexpr.format_git(head.epoch))
        self.terminal.blank()

        self._step(session, "Timestamp")
        new_epoch = self.prompter.timestamp_input(session, "new_timestamp", "New timestamp", head.epoch)

        self._step(session, "Confirm")
        self.terminal.kv("New date", timeexpr.format_git(new_epoch))
        if not self.prompter.confirm(session, "Amend commit with new timestamp?"):
            self.terminal.info("Cancelled")
            return FlowOutcome.CANCELLED

        self.engine.amend(new_epoch)
        session.complete_tab("Confirm")
        return FlowOutcome.SUCCESS

    def _ensure_staged(self, session: Session) -> bool:
        if self.backend.has_staged_changes():
            return True

        self.terminal.warn("No staged changes")
        if not self.backend.has_unstaged_changes():
            raise PreconditionError("Nothing to commit")

        if self.prompter.confirm(session, "Stage all changes?"):
            self.engine.stage_all()
            return True

        self.terminal.info("Use 'git add' to stage changes first")
        return False

    def _commit(self, passthrough: List[str]) -> FlowOutcome:
        session = Session.with_tabs("Options")
        if not self._ensure_staged(session):
            return FlowOutcome.FAILED

        self.terminal.section("Interactive Commit")
        summary = self.backend.staged_summary().splitlines()
        if summary:
            self.terminal.console.print("[dim bold]Staged changes:[/dim bold]")
            for line in summary[:10]:
                self.terminal.console.print(escape(line), highlight=False)
            self.terminal.blank()

        self._step(session, "Options")
        selected = self.prompter.multi_select(session, "selected_options",
                                              "What would you like to configure?",
                                              COMMIT_OPTIONS, COMMIT_DESCRIPTIONS, COMMIT_DEFAULTS)
        for index in sorted(selected):
            if index < 3:
                session.add_tab(COMMIT_OPTIONS[index])
        session.add_tab("Review")

        message = author = ""
        epoch = None
        if 0 in selected:
            self._step(session, "Message")
            message = self.prompter.text_input(session, "commit_message", "Commit message")
        if 1 in selected:
            self._step(session, "Timestamp")
            epoch = self.prompter.timestamp_input(session, "commit_timestamp", "Timestamp",
                                                  self._now())
        if 2 in selected:
            self._step(session, "Author")
            author = self.prompter.text_input(session, "commit_author", "Author",
                                              self.backend.user_identity(), validate_author)
        sign = 3 in selected

        args: List[str] = []
        if message:
            args += ["-m", message]
        if author:
            args.append(f"--author={author}")
        if sign:
            args.append("-S")
        args += passthrough

        self._step(session, "Review")
        self.terminal.section("Review")
        self.terminal.kv("Message", message or "(will open editor)")
        if epoch is not None:
            self.terminal.kv("Timestamp", timeexpr.format_display(epoch))
        if author:
            self.terminal.kv("Author", author)
        if sign:
            self.terminal.kv("GPG Sign", "Yes")
        self.terminal.blank()

        if not self.prompter.confirm(session, "Create commit?"):
            self.terminal.info("Cancelled")
            return FlowOutcome.CANCELLED

        new_head = self.engine.commit(args, epoch)
        session.complete_tab("Review")
        if new_head is not None:
            self.terminal.success("Commit created")
            self.terminal.kv("Hash", new_head[:7])
        return FlowOutcome.SUCCESS


class PushFlow(_Flow):
    """Review unpushed commits, optionally rewrite their timestamps, then push."""

    def run(self, passthrough: Sequence[str] = ()) -> FlowOutcome:
        return self._guard(lambda: self._push(list(passthrough)))

    def _push(self, passthrough: List[str]) -> FlowOutcome:
        commits = self.backend.unpushed_commits()
        if not commits:
            self.terminal.info("No unpushed commits")
            self.terminal.info(f"Running: git push {' '.join(passthrough)}".rstrip())
            self.engine.push(passthrough)
            return FlowOutcome.SUCCESS

        session = Session.with_tabs("Operation", "Timestamps", "Review", "Push")
        self.terminal.section("Interactive Push")
        self._list_commits(commits)

        self._step(session, "Operation")
        choice = self.prompter.single_select(session, "operation", "Select operation:",
                                             [label for _, label, _ in PUSH_OPERATIONS],
                                             [desc for _, _, desc in PUSH_OPERATIONS], 0)
        operation = PUSH_OPERATIONS[choice][0]
        logger.debug(f"Push operation: {operation.value}")

        if operation is PushOperation.PUSH_AS_IS:
            self._step(session, "Push")
            if not self.engine.check_protected_branch(session, force=False):
                self.terminal.info("Cancelled")
                return FlowOutcome.CANCELLED
            self.engine.push(passthrough)
            session.complete_tab("Push")
            return FlowOutcome.SUCCESS

        self._step(session, "Timestamps")
        if operation is PushOperation.REWRITE_INDIVIDUAL:
            plan = self.plan_individual(session, commits)
            label, question, validate = "push-rewrite", "Rewrite commit timestamps?", True
        elif operation is PushOperation.BATCH_OFFSET:
            plan = self.plan_offset(session, commits)
            label, question, validate = "push-offset", "Apply offset?", False
        else:
            plan = self.plan_preset(session, commits)
            label, question, validate = "push-preset", "Apply preset pattern?", True

        self._step(session, "Review")
        self.show_plan(plan)
        if not self.prompter.confirm(session, question):
            self.terminal.info("Cancelled")
            return FlowOutcome.CANCELLED

        self.engine.execute(plan, label, validate=validate, min_gap=self.min_gap)

        self._step(session, "Push")
        self.terminal.blank()
        if not self.prompter.confirm(session, "Push changes?"):
            self.terminal.info("Changes rewritten locally but not pushed")
            return FlowOutcome.SUCCESS

        if not self.engine.check_protected_branch(session, force=True):
            self.terminal.info("Changes rewritten locally but not pushed")
            return FlowOutcome.CANCELLED

        self.engine.push(passthrough, force_with_lease=True)
        session.complete_tab("Push")
        self.terminal.success("Pushed successfully")
        return FlowOutcome.SUCCESS

    def _list_commits(self, commits: List[CommitRecord]) -> None:
        self.terminal.console.print(f"[dim bold]Unpushed commits ({len(commits)}):[/dim bold]")
        self.terminal.blank()
        for commit in commits:
            self.terminal.console.print(
                f"  [cyan]{commit.id}[/cyan]  {escape(commit.subject[:40]):<40}  "
                f"[dim]{timeexpr.format_git(commit.epoch)}[/dim]",
                highlight=False)
        self.terminal.blank()

    # Plan builders --------------------------------------------------------------

    def plan_individual(self, session: Session, commits: List[CommitRecord]) -> RewritePlan:
        """Ask for every commit's new time, oldest first, keeping each after the previous."""
        self.terminal.section("Timestamp Configuration")
        self.terminal.info("Configure each commit (oldest to newest)")
        self.terminal.blank()

        plan = RewritePlan()
        previous = None
        for i, commit in enumerate(commits):
            self.terminal.console.print(
                f"[dim]{i + 1}/{len(commits)}[/dim]  [cyan]{commit.id}[/cyan]  {escape(commit.subject)}",
                highlight=False)
            self.terminal.kv("Current", timeexpr.format_display(commit.epoch))

            new_epoch = self.prompter.timestamp_input(session, f"ts_{i}", "New timestamp", commit.epoch)
            if previous is not None:
                adjusted = timeexpr.ensure_after(new_epoch, previous, self.min_gap, self.rng)
                if adjusted != new_epoch:
                    self.terminal.warn("Adjusted to maintain chronological order")
                    self.terminal.kv("Adjusted", timeexpr.format_display(adjusted))
                    new_epoch = adjusted

            plan.add(commit, new_epoch)
            previous = new_epoch
            self.terminal.blank()
        return plan

    def plan_offset(self, session: Session, commits: List[CommitRecord]) -> RewritePlan:
        """Shift every commit by one relative offset."""
        self.terminal.section("Batch Offset")
        self.terminal.console.print(f"Apply same offset to all {len(commits)} commits")
        self.terminal.blank()

        epochs = [commit.epoch for commit in commits]
        offset = self.prompter.text_input(session, "offset", "Offset (e.g., -2h, +30m)",
                                          validator=lambda value: validate_offset(value, epochs))
        new_epochs = timeexpr.batch_offset(offset, epochs)

        plan = RewritePlan()
        for commit, new_epoch in zip(commits, new_epochs):
            plan.add(commit, new_epoch)
        return plan

    def plan_preset(self, session: Session, commits: List[CommitRecord]) -> RewritePlan:
        """Anchor the oldest commit, then space the rest with a cadence preset."""
        self.terminal.section("Preset Pattern")

        names = self.presets.names()
        descriptions = [self.presets.get(name).description for name in names]
        initial = names.index(self.presets.default)
        index = self.prompter.single_select(session, "preset", "Select pattern:", names,
                                            descriptions, initial)
        preset = self.presets.get(names[index])

        self.terminal.blank()
        self.terminal.info(f"Selected: {preset.name} - {preset.description}")
        self.terminal.info("Configure starting point for oldest commit")
        base = self.prompter.timestamp_input(session, "base_timestamp", "Base timestamp",
                                             commits[0].epoch)

        plan = RewritePlan()
        previous = timeexpr.randomize(base, Precision.SECOND, self.rng)
        plan.add(commits[0], previous)
        for commit in commits[1:]:
            proposed = self.presets.apply(preset.name, previous, self.rng)
            previous = timeexpr.ensure_after(proposed, previous, self.min_gap, self.rng)
            plan.add(commit, previous)
        return plan

    def show_plan(self, plan: RewritePlan) -> None:
        self.terminal.section("Preview")
        for entry in plan:
            self.terminal.console.print(
                f"  [cyan]{entry.commit.id}[/cyan]  {escape(entry.commit.subject[:30])}  "
                f"[dim]({timeexpr.describe_delta(entry.delta)})[/dim]",
                highlight=False)
            self.terminal.console.print(
                f"    [dim]Old:[/dim] {timeexpr.format_display(entry.commit.epoch)}", highlight=False)
            self.terminal.console.print(
                f"    [dim]New:[/dim] {timeexpr.format_display(entry.new_epoch)}", highlight=False)
        self.terminal.blank()
