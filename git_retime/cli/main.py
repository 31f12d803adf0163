"""Main CLI entry point for git-retime."""

import click
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Tuple

import git
from rich.console import Console

from ..core.config import ConfigManager
from ..core.errors import MutationError, PreconditionError
from ..core.flows import CommitFlow, PushFlow
from ..core.models import FlowOutcome
from ..core.presets import PresetRegistry
from ..core.rewrite_engine import RewriteEngine
from ..core import timeexpr
from ..ui import FuzzyPicker, Prompter, RawInput, Session, StreamInput, Terminal
from ..ui.keys import KeySource
from ..vcs import GitBackend


logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
BACKUP_LIST_LIMIT = 10


def _find_root(path: Path) -> Path:
    """Top level of the working tree containing ``path``, or ``path`` itself."""
    try:
        return Path(git.Repo(str(path), search_parent_directories=True).working_dir)
    except (git.InvalidGitRepositoryError, git.NoSuchPathError):
        return path


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True),
              help='Path to configuration file')
@click.option('--repo', '-r', type=click.Path(exists=True, file_okay=False),
              help='Repository directory (defaults to the current directory)')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], repo: Optional[str], verbose: bool):
    """git-retime - Interactive commit timestamp control for git."""
    # Ensure context object exists
    ctx.ensure_object(dict)

    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format=LOG_FORMAT, stream=sys.stderr)

    # Set up configuration
    project_path = _find_root(Path(repo) if repo else Path.cwd())
    config_manager = ConfigManager(project_path)

    try:
        if config:
            config_data = config_manager.load_config(Path(config))
        else:
            config_data = config_manager.load_config()

        # Validate configuration
        validation_errors = config_manager.validate_config(config_data)
        if validation_errors:
            click.echo("Configuration validation errors:", err=True)
            for error in validation_errors:
                click.echo(f"  - {error}", err=True)
            if not ctx.resilient_parsing and ctx.invoked_subcommand != 'validate':
                sys.exit(1)
    except (OSError, ValueError) as e:
        if verbose:
            click.echo(f"Error loading configuration: {e}", err=True)
        config_data = config_manager.get_default_config()

    # Store in context for subcommands
    ctx.obj['config'] = config_data
    ctx.obj['config_manager'] = config_manager
    ctx.obj['project_root'] = project_path
    ctx.obj['verbose'] = verbose


def _apply_verbose(ctx: click.Context, verbose: bool) -> None:
    """Honor -v given after the subcommand name as well as before it."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        ctx.obj['verbose'] = True


def _key_source() -> KeySource:
    stdin = click.get_text_stream('stdin')
    try:
        if stdin.isatty():
            return RawInput(stdin)
    except (AttributeError, ValueError):
        pass
    return StreamInput(stdin)


def _build_engine(ctx: click.Context, dry_run: bool) -> RewriteEngine:
    """Wire backend, terminal and prompter from the loaded configuration."""
    config_data = ctx.obj['config']
    display = config_data.get('display', {})

    try:
        backend = GitBackend(ctx.obj['project_root'])
    except PreconditionError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    terminal = Terminal(Console(highlight=False), _key_source(),
                        ascii_only=display.get('ascii_glyphs', False))
    prompter = Prompter(terminal, FuzzyPicker(), use_fzf=display.get('use_fzf', True),
                        show_tabs=display.get('show_tabs', True))
    return RewriteEngine(backend, prompter, config_data, dry_run=dry_run)


@cli.command(context_settings={'ignore_unknown_options': True})
@click.option('--amend', is_flag=True, help="Only change the last commit's timestamp")
@click.option('--dry-run', is_flag=True, help='Print git commands instead of running them')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.argument('args', nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def commit(ctx: click.Context, amend: bool, dry_run: bool, verbose: bool, args: Tuple[str]):
    """Create a commit interactively (extra ARGS go to git commit)."""
    _apply_verbose(ctx, verbose)
    engine = _build_engine(ctx, dry_run)
    flow = CommitFlow(engine, engine.prompter, ctx.obj['config'])

    try:
        outcome = flow.run_amend() if amend else flow.run(args)
    except KeyboardInterrupt:
        outcome = FlowOutcome.CANCELLED

    sys.exit(outcome.exit_code)


@cli.command(context_settings={'ignore_unknown_options': True})
@click.option('--dry-run', is_flag=True, help='Print git commands instead of running them')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.argument('args', nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def push(ctx: click.Context, dry_run: bool, verbose: bool, args: Tuple[str]):
    """Review unpushed commits, retime them, and push (extra ARGS go to git push)."""
    _apply_verbose(ctx, verbose)
    engine = _build_engine(ctx, dry_run)
    flow = PushFlow(engine, engine.prompter, ctx.obj['config'])

    try:
        outcome = flow.run(args)
    except KeyboardInterrupt:
        outcome = FlowOutcome.CANCELLED

    sys.exit(outcome.exit_code)


@cli.command()
@click.option('--restore', 'restore_ref', type=str,
              help='Reset the current branch to this backup')
@click.option('--dry-run', is_flag=True, help='Show what would be restored without doing it')
@click.pass_context
def backups(ctx: click.Context, restore_ref: Optional[str], dry_run: bool):
    """List backup references, or restore one."""
    engine = _build_engine(ctx, dry_run)
    terminal = engine.terminal

    if restore_ref:
        try:
            restored = engine.restore_backup(restore_ref, Session())
        except KeyboardInterrupt:
            sys.exit(FlowOutcome.CANCELLED.exit_code)
        except (PreconditionError, MutationError) as e:
            terminal.error(str(e))
            sys.exit(FlowOutcome.FAILED.exit_code)

        if not restored:
            terminal.info("Cancelled")
            sys.exit(FlowOutcome.CANCELLED.exit_code)
        terminal.success(f"Restored from {restore_ref}")
        return

    found = engine.list_backups()
    if not found:
        click.echo("No backups found.")
        return

    now = int(time.time())
    click.echo("Recent backups:")
    for backup in found[:BACKUP_LIST_LIMIT]:
        click.echo(f"  {backup.name}  {backup.target[:7]}  "
                   f"{timeexpr.relative_phrase(backup.created, now)}")
    if len(found) > BACKUP_LIST_LIMIT:
        click.echo(f"  ... and {len(found) - BACKUP_LIST_LIMIT} more")


@cli.command()
@click.pass_context
def presets(ctx: click.Context):
    """List cadence presets available to the push flow."""
    config_data = ctx.obj['config']
    timestamps = config_data.get('timestamps', {})
    registry = PresetRegistry(config_data.get('presets') or {},
                              timestamps.get('default_preset', 'irl'))

    for name in registry.names():
        preset = registry.get(name)
        window = (f"{preset.hour_window[0]:02d}-{preset.hour_window[1]:02d}h"
                  if preset.hour_window else "any time")
        marker = "*" if name == registry.default else " "
        click.echo(f"{marker} {name:<12} {timeexpr.describe_delta(preset.gap_min)[1:]:>6}"
                   f" - {timeexpr.describe_delta(preset.gap_max)[1:]:<6} {window:<9} "
                   f"{preset.description}")


@cli.command()
@click.pass_context
def config(ctx: click.Context):
    """Show current configuration."""
    config_data = ctx.obj['config']
    config_manager = ctx.obj['config_manager']

    click.echo(f"Configuration file: {config_manager.get_config_path()}")
    click.echo("Current configuration:")
    click.echo("=" * 50)

    timestamps = config_data.get('timestamps', {})
    click.echo("Timestamps:")
    click.echo(f"  Minimum gap: {timestamps.get('min_gap_seconds', 'N/A')} seconds")
    click.echo(f"  Default preset: {timestamps.get('default_preset', 'N/A')}")

    safety = config_data.get('safety', {})
    click.echo("\nSafety:")
    click.echo(f"  Protected branches: {', '.join(safety.get('protected_branches', []))}")
    click.echo(f"  Backup prefix: {safety.get('backup_ref_prefix', 'N/A')}")
    click.echo(f"  Confirm protected: {safety.get('confirm_protected', 'N/A')}")

    display = config_data.get('display', {})
    click.echo("\nDisplay:")
    click.echo(f"  Use fzf: {'Enabled' if display.get('use_fzf') else 'Disabled'}")
    click.echo(f"  ASCII glyphs: {'Enabled' if display.get('ascii_glyphs') else 'Disabled'}")
    click.echo(f"  Tab bar: {'Enabled' if display.get('show_tabs') else 'Disabled'}")

    custom = config_data.get('presets') or {}
    if custom:
        click.echo("\nCustom presets:")
        for name in custom:
            click.echo(f"  {name}")


@cli.command()
@click.option('--validate-only', is_flag=True, help='Only validate configuration without showing details')
@click.pass_context
def validate(ctx: click.Context, validate_only: bool):
    """Validate the current configuration."""
    config_data = ctx.obj['config']
    config_manager = ctx.obj['config_manager']

    validation_errors = config_manager.validate_config(config_data)

    if validation_errors:
        click.echo("Configuration validation failed:", err=True)
        for error in validation_errors:
            click.echo(f"  ✗ {error}", err=True)
        sys.exit(1)
    else:
        click.echo("✓ Configuration is valid")
        if not validate_only:
            click.echo(f"Configuration file: {config_manager.get_config_path()}")


@cli.command()
@click.option('--force', is_flag=True, help='Overwrite an existing configuration file')
@click.pass_context
def init(ctx: click.Context, force: bool):
    """Write a default configuration file for this repository."""
    config_manager = ctx.obj['config_manager']
    config_path = config_manager.get_config_path()

    if config_path.exists() and not force:
        click.echo(f"Configuration already exists: {config_path}")
        click.echo("Use --force to overwrite it.")
        return

    if config_manager.create_default_config_file():
        click.echo(f"✓ Created configuration file: {config_path}")
    else:
        click.echo("✗ Failed to create configuration file", err=True)
        sys.exit(1)


if __name__ == '__main__':
    cli()
