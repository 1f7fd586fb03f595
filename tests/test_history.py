"""Tests for tidy_release.history."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from unittest.mock import MagicMock, call, patch

import pytest

from tidy_release.config import ReleaseConfig
from tidy_release.errors import RepositoryStateError
from tidy_release.history import CommitGrammar, GitHistory
from tidy_release.models import CommitKind
from tidy_release.shell import git


class TestCommitGrammar:
    @pytest.mark.parametrize(
        ("subject", "kind"),
        [
            ("feat: add export", CommitKind.FEATURE),
            ("feat(cli): add export", CommitKind.FEATURE),
            ("FEAT: shouting", CommitKind.FEATURE),
            ("fix: handle empty input", CommitKind.FIX),
            ("perf(core): faster parse", CommitKind.FIX),
            ("feat!: drop python 3.9", CommitKind.BREAKING),
            ("refactor(api)!: rename client", CommitKind.BREAKING),
            ("chore: bump deps", CommitKind.OTHER),
            ("docs: typo", CommitKind.OTHER),
            ("Merge pull request #12 from acme/branch", CommitKind.OTHER),
            ("feat add export", CommitKind.OTHER),
            ("", CommitKind.OTHER),
        ],
    )
    def test_classifies_subject(
        self, grammar: CommitGrammar, subject: str, kind: CommitKind
    ) -> None:
        assert grammar.parse("abc", subject).kind is kind

    def test_breaking_footer(self, grammar: CommitGrammar) -> None:
        commit = grammar.parse(
            "abc",
            "fix: tighten validation",
            "Details.\n\nBREAKING CHANGE: rejects nulls",
        )
        assert commit.kind is CommitKind.BREAKING

    def test_footer_token_must_start_a_line(self, grammar: CommitGrammar) -> None:
        commit = grammar.parse("abc", "fix: x", "no BREAKING CHANGE: here")
        assert commit.kind is CommitKind.FIX

    def test_footer_ignored_for_unparseable_subject(
        self, grammar: CommitGrammar
    ) -> None:
        commit = grammar.parse("abc", "Update stuff", "BREAKING CHANGE: yes")
        assert commit.kind is CommitKind.OTHER

    def test_extracts_scope_and_description(self, grammar: CommitGrammar) -> None:
        commit = grammar.parse("abc", "feat( cli ): add --json flag")
        assert commit.scope == "cli"
        assert commit.description == "add --json flag"

    def test_custom_types(self) -> None:
        grammar = CommitGrammar(["feature"], ["bugfix"], ["BREAKS"])
        assert grammar.classify("feature: x") is CommitKind.FEATURE
        assert grammar.classify("feat: x") is CommitKind.OTHER
        assert grammar.classify("bugfix: y\n\nBREAKS: api") is CommitKind.BREAKING

    def test_no_breaking_tokens(self) -> None:
        grammar = CommitGrammar(["feat"], ["fix"], [])
        assert grammar.classify("fix: y\n\nBREAKING CHANGE: z") is CommitKind.FIX


class TestEnsureFullHistory:
    @patch("tidy_release.history.git")
    def test_full_clone_passes(self, mock_git: MagicMock, config) -> None:
        mock_git.side_effect = ["true", "false"]
        GitHistory(config).ensure_full_history()

    @patch("tidy_release.history.git")
    def test_not_a_repo(self, mock_git: MagicMock, config) -> None:
        mock_git.return_value = ""
        with pytest.raises(RepositoryStateError, match="Not a git repository"):
            GitHistory(config).ensure_full_history()

    @patch("tidy_release.history.git")
    def test_shallow_clone_rejected(self, mock_git: MagicMock, config) -> None:
        mock_git.side_effect = ["true", "true"]
        with pytest.raises(RepositoryStateError, match="shallow"):
            GitHistory(config).ensure_full_history()


class TestLastReleaseTag:
    @patch("tidy_release.history.git")
    def test_returns_highest_merged_tag(self, mock_git: MagicMock, config) -> None:
        mock_git.return_value = "v1.9.0\nv1.10.0\nv1.2.0"

        assert GitHistory(config).last_release_tag() == "v1.10.0"
        mock_git.assert_called_once_with(
            "tag", "--merged", "HEAD", "--list", "v*", check=False
        )

    @patch("tidy_release.history.git")
    def test_final_release_outranks_its_candidates(
        self, mock_git: MagicMock, config
    ) -> None:
        mock_git.return_value = "v2.0.0\nv2.0.0-rc.1\nv2.0.0-rc.2\nv1.9.0"
        assert GitHistory(config).last_release_tag() == "v2.0.0"

    @patch("tidy_release.history.git")
    def test_skips_tags_that_are_not_versions(
        self, mock_git: MagicMock, config
    ) -> None:
        mock_git.return_value = "vendor-sync\nv1.4.2\nvnext"
        assert GitHistory(config).last_release_tag() == "v1.4.2"

    @patch("tidy_release.history.git")
    def test_none_when_no_tag_is_a_version(self, mock_git: MagicMock, config) -> None:
        mock_git.return_value = "vendor-sync"
        assert GitHistory(config).last_release_tag() is None

    @patch("tidy_release.history.git")
    def test_none_without_tags(self, mock_git: MagicMock, config) -> None:
        mock_git.return_value = ""
        assert GitHistory(config).last_release_tag() is None

    @patch("tidy_release.history.git")
    def test_custom_ref_and_prefix(self, mock_git: MagicMock) -> None:
        mock_git.return_value = "rel-2.0.0"
        history = GitHistory(ReleaseConfig(tag_prefix="rel-"))

        assert history.last_release_tag("rel-2.1.0^") == "rel-2.0.0"
        args = mock_git.call_args.args
        assert args[2] == "rel-2.1.0^"
        assert args[4] == "rel-*"

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_against_real_repository(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        for var in ("GIT_AUTHOR", "GIT_COMMITTER"):
            monkeypatch.setenv(f"{var}_NAME", "test")
            monkeypatch.setenv(f"{var}_EMAIL", "test@example.com")
        monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
        monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
        git("init", "-q")
        for tag in ("v2.0.0-rc.1", "v2.0.0", "vendor-sync"):
            git("commit", "-q", "--allow-empty", "-m", f"chore: {tag}")
            git("tag", tag)

        assert GitHistory(ReleaseConfig()).last_release_tag() == "v2.0.0"


class TestCommitsSince:
    LOG = (
        "aaaaaaa1\x1ffix: first\x1f\x1e\n"
        "bbbbbbb2\x1ffeat(api): second\x1fLonger body\nwith lines\x1e\n"
        "ccccccc3\x1fchore: third\x1f\x1e"
    )

    @patch("tidy_release.history.git")
    def test_parses_log_oldest_first(self, mock_git: MagicMock, config) -> None:
        mock_git.side_effect = ["ffff", self.LOG]

        commits = GitHistory(config).commits_since("v1.0.0")

        assert [c.sha for c in commits] == ["aaaaaaa1", "bbbbbbb2", "ccccccc3"]
        assert [c.kind for c in commits] == [
            CommitKind.FIX,
            CommitKind.FEATURE,
            CommitKind.OTHER,
        ]
        assert commits[1].body == "Longer body\nwith lines"
        assert mock_git.call_args.args[-1] == "v1.0.0..HEAD"

    @patch("tidy_release.history.git")
    def test_full_history_without_tag(self, mock_git: MagicMock, config) -> None:
        mock_git.side_effect = ["ffff", ""]

        assert GitHistory(config).commits_since(None) == []
        assert mock_git.call_args.args[-1] == "HEAD"

    @patch("tidy_release.history.git")
    def test_until_bounds_range(self, mock_git: MagicMock, config) -> None:
        mock_git.side_effect = ["ffff", ""]

        GitHistory(config).commits_since("v1.0.0", until="v1.1.0")

        assert mock_git.call_args.args[-1] == "v1.0.0..v1.1.0"

    @patch("tidy_release.history.git")
    def test_empty_repository(self, mock_git: MagicMock, config) -> None:
        mock_git.return_value = ""

        assert GitHistory(config).commits_since(None) == []
        mock_git.assert_called_once()


class TestTagExists:
    @patch("tidy_release.history.git")
    def test_local_tag(self, mock_git: MagicMock, config) -> None:
        mock_git.return_value = "deadbeef"
        assert GitHistory(config).tag_exists("v1.0.0")
        mock_git.assert_called_once()

    @patch("tidy_release.history.git")
    def test_remote_tag_is_fetched(self, mock_git: MagicMock, config) -> None:
        mock_git.side_effect = ["", "deadbeef\trefs/tags/v1.0.0", ""]

        assert GitHistory(config).tag_exists("v1.0.0")
        assert mock_git.call_args == call(
            "fetch", "--no-tags", "origin", "refs/tags/v1.0.0:refs/tags/v1.0.0"
        )

    @patch("tidy_release.history.git")
    def test_missing_tag(self, mock_git: MagicMock, config) -> None:
        mock_git.return_value = ""
        assert not GitHistory(config).tag_exists("v9.9.9")
