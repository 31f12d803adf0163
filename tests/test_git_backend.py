"""Tests for the GitPython backend against a real repository."""

from pathlib import Path

import pytest

from git_retime.core.errors import BackendError, PreconditionError
from git_retime.vcs import GitBackend


EPOCHS = [1700000000, 1700003600, 1700007200]


class TestGitBackendQueries:
    """Test read-only repository queries."""

    def test_not_a_repository(self, temp_project):
        """Test opening a plain directory fails with a precondition error."""
        pytest.importorskip("git")
        with pytest.raises(PreconditionError):
            GitBackend(temp_project)

    def test_subdirectory_finds_root(self, git_repo):
        """Test that any directory inside the working tree works."""
        subdir = Path(git_repo.working_dir) / "sub"
        subdir.mkdir()
        backend = GitBackend(subdir)
        assert backend.root == Path(git_repo.working_dir)

    def test_branch_and_head(self, git_repo):
        """Test branch name and HEAD record."""
        backend = GitBackend(Path(git_repo.working_dir))
        assert backend.current_branch() == "feature"

        head = backend.head()
        assert head.full_id == git_repo.head.commit.hexsha
        assert head.id == head.full_id[:7]
        assert head.subject == "Commit 3"
        assert head.epoch == EPOCHS[2]

    def test_detached_head(self, git_repo):
        """Test a detached HEAD reports no branch."""
        git_repo.git.checkout("--detach")
        assert GitBackend(Path(git_repo.working_dir)).current_branch() == ""

    def test_unpushed_without_upstream(self, git_repo):
        """Test every commit is unpushed when there is no upstream, oldest first."""
        backend = GitBackend(Path(git_repo.working_dir))
        assert backend.upstream() is None
        commits = backend.unpushed_commits()
        assert [c.subject for c in commits] == ["Commit 1", "Commit 2", "Commit 3"]
        assert [c.epoch for c in commits] == EPOCHS

    def test_unpushed_with_upstream(self, git_repo):
        """Test only commits after the upstream are listed."""
        first = list(git_repo.iter_commits("HEAD", reverse=True))[0]
        git_repo.git.branch("base", first.hexsha)
        git_repo.git.branch("--set-upstream-to=base")

        commits = GitBackend(Path(git_repo.working_dir)).unpushed_commits()
        assert [c.subject for c in commits] == ["Commit 2", "Commit 3"]

    def test_resolve(self, git_repo):
        """Test resolving revisions and rejecting unknown ones."""
        backend = GitBackend(Path(git_repo.working_dir))
        assert backend.resolve("HEAD") == git_repo.head.commit.hexsha
        assert backend.resolve("HEAD~1") == git_repo.head.commit.parents[0].hexsha
        with pytest.raises(BackendError):
            backend.resolve("no-such-revision")

    def test_staged_and_unstaged_changes(self, git_repo):
        """Test index and working tree inspection, and staging everything."""
        backend = GitBackend(Path(git_repo.working_dir))
        assert not backend.has_staged_changes()
        assert not backend.has_unstaged_changes()

        (Path(git_repo.working_dir) / "new.txt").write_text("new\n")
        assert backend.has_unstaged_changes()
        assert not backend.has_staged_changes()

        backend.stage_all()
        assert backend.has_staged_changes()
        assert "new.txt" in backend.staged_summary()

    def test_user_identity(self, git_repo):
        """Test the configured identity is formatted for --author."""
        assert GitBackend(Path(git_repo.working_dir)).user_identity() == \
            "Test User <test@example.com>"


class TestGitBackendMutations:
    """Test refs, amend and history rewrites."""

    def test_create_and_list_refs(self, git_repo):
        """Test creating a backup ref and listing it by prefix."""
        backend = GitBackend(Path(git_repo.working_dir))
        sha = backend.create_ref("refs/retime-backup/20240101-100000-amend")
        assert sha == git_repo.head.commit.hexsha

        refs = backend.list_refs("refs/retime-backup/")
        assert [(name, target) for name, target, _ in refs] == [
            ("refs/retime-backup/20240101-100000-amend", sha)]
        assert backend.list_refs("refs/other/") == []

    def test_reset_hard_to_backup(self, git_repo):
        """Test resetting the branch back to a saved ref."""
        backend = GitBackend(Path(git_repo.working_dir))
        first = list(git_repo.iter_commits("HEAD", reverse=True))[0].hexsha
        backend.create_ref("refs/retime-backup/old", first)

        backend.reset_hard("refs/retime-backup/old")
        assert git_repo.head.commit.hexsha == first

    def test_amend_timestamp(self, git_repo):
        """Test amend changes only the dates of HEAD."""
        before = git_repo.head.commit
        backend = GitBackend(Path(git_repo.working_dir))

        new_sha = backend.amend_timestamp(1700010000)
        after = git_repo.head.commit

        assert new_sha == after.hexsha != before.hexsha
        assert after.authored_date == 1700010000
        assert after.committed_date == 1700010000
        assert after.tree.hexsha == before.tree.hexsha
        assert after.message == before.message
        assert after.parents == before.parents

    def test_amend_leaves_staged_changes_alone(self, git_repo):
        """Test staged work is not folded into the amended commit."""
        path = Path(git_repo.working_dir) / "staged.txt"
        path.write_text("staged\n")
        git_repo.git.add(str(path))
        tree_before = git_repo.head.commit.tree.hexsha

        GitBackend(Path(git_repo.working_dir)).amend_timestamp(1700010000)
        assert git_repo.head.commit.tree.hexsha == tree_before

    def test_rewrite_all_commits(self, git_repo):
        """Test rewriting every commit keeps content and moves the branch."""
        backend = GitBackend(Path(git_repo.working_dir))
        old = list(git_repo.iter_commits("HEAD", reverse=True))
        new_epochs = [1600000000, 1600003600, 1600007200]

        new_head = backend.rewrite_timestamps(
            [(c.hexsha, e) for c, e in zip(old, new_epochs)], old[0].hexsha)

        assert git_repo.heads.feature.commit.hexsha == new_head
        new = list(git_repo.iter_commits("HEAD", reverse=True))
        assert len(new) == 3
        for before, after, epoch in zip(old, new, new_epochs):
            assert after.authored_date == epoch
            assert after.committed_date == epoch
            assert after.tree.hexsha == before.tree.hexsha
            assert after.message == before.message
            assert after.author.email == before.author.email
            assert after.author_tz_offset == before.author_tz_offset
        assert not new[0].parents

    def test_rewrite_suffix_only(self, git_repo):
        """Test commits before the oldest rewritten one are untouched."""
        backend = GitBackend(Path(git_repo.working_dir))
        old = list(git_repo.iter_commits("HEAD", reverse=True))

        backend.rewrite_timestamps([(old[1].hexsha, 1700005000), (old[2].hexsha, 1700009000)],
                                   old[1].hexsha)

        new = list(git_repo.iter_commits("HEAD", reverse=True))
        assert new[0].hexsha == old[0].hexsha
        assert new[1].parents[0].hexsha == old[0].hexsha
        assert [c.authored_date for c in new] == [EPOCHS[0], 1700005000, 1700009000]

    def test_rewrite_keeps_unlisted_descendants(self, git_repo):
        """Test descendants not in the plan keep their dates but get new parents."""
        backend = GitBackend(Path(git_repo.working_dir))
        old = list(git_repo.iter_commits("HEAD", reverse=True))

        backend.rewrite_timestamps([(old[1].hexsha, 1700005000)], old[1].hexsha)

        new = list(git_repo.iter_commits("HEAD", reverse=True))
        assert new[2].hexsha != old[2].hexsha
        assert new[2].authored_date == EPOCHS[2]
        assert new[2].parents[0].hexsha == new[1].hexsha

    def test_rewrite_detached_head(self, git_repo):
        """Test rewriting with a detached HEAD moves HEAD itself."""
        git_repo.git.checkout("--detach")
        backend = GitBackend(Path(git_repo.working_dir))
        head = git_repo.head.commit.hexsha

        new_head = backend.rewrite_timestamps([(head, 1700009999)], head)
        assert git_repo.head.commit.hexsha == new_head
        assert git_repo.heads.feature.commit.hexsha == head

    def test_rewrite_outside_range(self, git_repo):
        """Test commits not between the oldest and HEAD are rejected."""
        backend = GitBackend(Path(git_repo.working_dir))
        old = list(git_repo.iter_commits("HEAD", reverse=True))
        head_before = git_repo.head.commit.hexsha

        with pytest.raises(BackendError):
            backend.rewrite_timestamps([(old[0].hexsha, 1600000000)], old[1].hexsha)
        assert git_repo.head.commit.hexsha == head_before

    def test_failed_git_command(self, git_repo):
        """Test git failures surface as BackendError."""
        backend = GitBackend(Path(git_repo.working_dir))
        with pytest.raises(BackendError):
            backend.reset_hard("no-such-revision")
