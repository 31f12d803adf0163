"""Integration tests for CLI functionality."""

import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from git_retime.cli.main import cli
from git_retime.core.config import ConfigManager
from git_retime.core.flows import PushFlow

from conftest import DOWN, ENTER, FakeBackend, make_commits


class TestCLIBasics:
    """Test CLI help and global options."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()

    def test_cli_help(self):
        """Test that CLI help lists the commands."""
        result = self.runner.invoke(cli, ['--help'])
        assert result.exit_code == 0
        assert 'Interactive commit timestamp control' in result.output
        for command in ('commit', 'push', 'backups', 'presets', 'config', 'validate', 'init'):
            assert command in result.output

    def test_commit_help_mentions_amend(self):
        """Test the commit command documents --amend and --dry-run."""
        result = self.runner.invoke(cli, ['commit', '--help'])
        assert result.exit_code == 0
        assert '--amend' in result.output
        assert '--dry-run' in result.output

    def test_invalid_config_path(self):
        """Test that a missing config file is rejected."""
        result = self.runner.invoke(cli, ['--config', '/nonexistent/config.yml', 'presets'])
        assert result.exit_code != 0

    def test_verbose_flag(self):
        """Test that --verbose does not break normal commands."""
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, ['--verbose', 'presets'])
            assert result.exit_code == 0


class TestConfigCommands:
    """Test init, config and validate."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()
        self.temp_dir = Path(tempfile.mkdtemp())

    def teardown_method(self):
        """Clean up test environment."""
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_init_creates_config(self):
        """Test init writes a valid default configuration."""
        result = self.runner.invoke(cli, ['--repo', str(self.temp_dir), 'init'])
        assert result.exit_code == 0
        assert 'Created configuration file' in result.output

        config_path = self.temp_dir / '.git-retime' / 'config.yml'
        assert config_path.exists()
        manager = ConfigManager(self.temp_dir)
        assert manager.validate_config(manager.load_config()) == []

    def test_init_twice(self):
        """Test init refuses to overwrite without --force."""
        self.runner.invoke(cli, ['--repo', str(self.temp_dir), 'init'])
        result = self.runner.invoke(cli, ['--repo', str(self.temp_dir), 'init'])
        assert result.exit_code == 0
        assert 'already exists' in result.output

        result = self.runner.invoke(cli, ['--repo', str(self.temp_dir), 'init', '--force'])
        assert 'Created configuration file' in result.output

    def test_config_shows_defaults(self):
        """Test config prints the effective settings."""
        result = self.runner.invoke(cli, ['--repo', str(self.temp_dir), 'config'])
        assert result.exit_code == 0
        assert 'Minimum gap: 60 seconds' in result.output
        assert 'Default preset: irl' in result.output
        assert 'main' in result.output

    def test_validate_valid(self):
        """Test validate on the default configuration."""
        result = self.runner.invoke(cli, ['--repo', str(self.temp_dir), 'validate'])
        assert result.exit_code == 0
        assert 'Configuration is valid' in result.output

    def test_invalid_config_fails(self):
        """Test invalid values stop commands and fail validation."""
        config_dir = self.temp_dir / '.git-retime'
        config_dir.mkdir()
        (config_dir / 'config.yml').write_text("timestamps:\n  min_gap_seconds: -5\n")

        result = self.runner.invoke(cli, ['--repo', str(self.temp_dir), 'config'])
        assert result.exit_code == 1
        assert 'min_gap_seconds' in result.output

        result = self.runner.invoke(cli, ['--repo', str(self.temp_dir), 'validate'])
        assert result.exit_code == 1
        assert 'Configuration validation failed' in result.output


class TestPresetsCommand:
    """Test the presets listing."""

    def test_lists_builtin_presets(self):
        """Test every built-in preset is listed and the default is marked."""
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ['presets'])
        assert result.exit_code == 0
        for name in ('work-hours', 'quick-fix', 'deep-work', 'irl', 'morning', 'evening', 'night-owl'):
            assert name in result.output
        assert '* irl' in result.output
        assert '09-17h' in result.output

    def test_custom_presets(self, temp_project):
        """Test presets from configuration are listed."""
        config_dir = temp_project / '.git-retime'
        config_dir.mkdir()
        (config_dir / 'config.yml').write_text(
            "presets:\n"
            "  lunch:\n"
            "    gap_min: 600\n"
            "    gap_max: 1200\n"
            "    hour_window: [12, 14]\n"
            "    description: Lunch break commits\n")

        result = CliRunner().invoke(cli, ['--repo', str(temp_project), 'presets'])
        assert result.exit_code == 0
        assert 'lunch' in result.output
        assert 'Lunch break commits' in result.output


class TestInteractiveCommands:
    """Test commit, push and backups wired to a fake repository."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()
        self.backend = FakeBackend(make_commits([1700000000, 1700003600]))

    def invoke(self, args, keys=""):
        with patch('git_retime.cli.main.GitBackend', return_value=self.backend):
            with self.runner.isolated_filesystem():
                return self.runner.invoke(cli, args, input=keys)

    def test_outside_repository(self):
        """Test commands needing a repository exit with 1."""
        with self.runner.isolated_filesystem():
            for args in (['commit'], ['push'], ['backups']):
                result = self.runner.invoke(cli, args)
                assert result.exit_code == 1
                assert 'Not a git repository' in result.output

    def test_push_offset_without_pushing(self):
        """Test a batch offset through the CLI exits with 0."""
        keys = DOWN + DOWN + ENTER + "-2h" + ENTER + "y" + "n"
        result = self.invoke(['push', 'origin', 'feature'], keys)

        assert result.exit_code == 0
        _, pairs, _ = self.backend.called('rewrite_timestamps')[0]
        assert [epoch for _, epoch in pairs] == [1700000000 - 7200, 1700003600 - 7200]
        assert 'rewritten locally but not pushed' in result.output

    def test_push_passthrough_args(self):
        """Test unknown options are passed through to git push."""
        result = self.invoke(['push', '--tags', 'origin'], ENTER)
        assert result.exit_code == 0
        assert self.backend.called('push') == [('push', ['--tags', 'origin'], False)]

    def test_push_cancelled_exit_code(self):
        """Test cancelling exits with 130."""
        result = self.invoke(['push'], "\x1b")
        assert result.exit_code == 130
        assert self.backend.calls == []

    def test_closed_input_cancels(self):
        """Test running out of input counts as a cancel."""
        result = self.invoke(['commit', '--amend'], "")
        assert result.exit_code == 130

    def test_keyboard_interrupt(self):
        """Test Ctrl+C maps to the cancelled exit code."""
        with patch.object(PushFlow, 'run', side_effect=KeyboardInterrupt):
            result = self.invoke(['push'])
        assert result.exit_code == 130

    def test_commit_amend(self):
        """Test amending through the CLI."""
        result = self.invoke(['commit', '--amend'], "+1h" + ENTER + "y")
        assert result.exit_code == 0
        assert [call[0] for call in self.backend.calls] == ['create_ref', 'amend_timestamp']
        assert 'Commit amended' in result.output

    def test_commit_failure_exit_code(self):
        """Test a failed commit exits with 1."""
        self.backend.fail.add('commit')
        result = self.invoke(['commit', '--no-verify'], ENTER + "msg" + ENTER + "y")
        assert result.exit_code == 1

    def test_commit_dry_run(self):
        """Test dry-run prints the git command without committing."""
        result = self.invoke(['commit', '--dry-run'], ENTER + "msg" + ENTER + "y")
        assert result.exit_code == 0
        assert self.backend.called('commit') == []
        assert '[dry-run] git commit -m msg' in result.output

    def test_commit_verbose_after_subcommand(self):
        """Test -v after the subcommand enables logging instead of reaching git."""
        result = self.invoke(['commit', '-v'], ENTER + "msg" + ENTER + "y")
        assert result.exit_code == 0
        _, args, _ = self.backend.called('commit')[0]
        assert '-v' not in args
        assert args[:2] == ['-m', 'msg']

    def test_push_verbose_after_subcommand(self):
        """Test -v after the subcommand is not forwarded to git push."""
        result = self.invoke(['push', '-v', 'origin'], ENTER)
        assert result.exit_code == 0
        assert self.backend.called('push') == [('push', ['origin'], False)]

    def test_backups_empty(self):
        """Test listing when no backup exists."""
        result = self.invoke(['backups'])
        assert result.exit_code == 0
        assert 'No backups found.' in result.output

    def test_backups_listing_is_limited(self):
        """Test only the newest backups are listed."""
        for day in range(1, 13):
            self.backend.refs[f"refs/retime-backup/202401{day:02d}-100000-amend"] = "a" * 40

        result = self.invoke(['backups'])
        assert result.exit_code == 0
        assert 'refs/retime-backup/20240112-100000-amend' in result.output
        assert 'refs/retime-backup/20240101-100000-amend' not in result.output
        assert '... and 2 more' in result.output

    def test_backups_restore(self):
        """Test restoring a backup after confirmation."""
        self.backend.refs["refs/retime-backup/20240101-100000-amend"] = "a" * 40
        result = self.invoke(['backups', '--restore', '20240101-100000-amend'], "y")
        assert result.exit_code == 0
        assert self.backend.called('reset_hard') == [
            ('reset_hard', 'refs/retime-backup/20240101-100000-amend')]

    def test_backups_restore_unknown(self):
        """Test restoring a missing backup fails."""
        result = self.invoke(['backups', '--restore', 'nope'])
        assert result.exit_code == 1
        assert 'Backup not found' in result.output


class TestAgainstRealRepository:
    """Drive the CLI against a real git repository in dry-run mode."""

    def test_push_dry_run(self, git_repo):
        """Test the push flow lists real commits and mutates nothing."""
        head_before = git_repo.head.commit.hexsha
        keys = DOWN + DOWN + ENTER + "-1h" + ENTER + "y" + "y"
        result = CliRunner().invoke(cli, ['--repo', git_repo.working_dir, 'push', '--dry-run'],
                                    input=keys)

        assert result.exit_code == 0, result.output
        assert 'Commit 1' in result.output
        assert '[dry-run] Would rewrite 3 commits' in result.output
        assert '[dry-run] git push --force-with-lease' in result.output
        assert git_repo.head.commit.hexsha == head_before
        assert not [ref for ref in git_repo.refs if 'retime-backup' in ref.path]
