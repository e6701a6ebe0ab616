"""Unit tests for git introspection: ref safety, runner, output parsing."""

from __future__ import annotations

import subprocess

from conftest import StubGit, format_commit

from percy_sync.core import git
from percy_sync.core.environment import Environment
from percy_sync.core.git import (
    GIT_COMMIT_FORMAT,
    is_safe_ref,
    parse_commit,
    parse_field,
    raw_branch,
    raw_commit_data,
    run_git,
)


class TestRefSafety:
    def test_sha_and_parent_refs_are_safe(self):
        assert is_safe_ref("HEAD")
        assert is_safe_ref("HEAD^")
        assert is_safe_ref("a" * 40)

    def test_shell_metacharacters_are_rejected(self):
        assert not is_safe_ref("HEAD; rm -rf /")
        assert not is_safe_ref("$(whoami)")
        assert not is_safe_ref("--output=/tmp/x")
        assert not is_safe_ref("")

    def test_trailing_line_breaks_are_rejected(self):
        assert is_safe_ref("abc\n") is False
        assert is_safe_ref("abc\r") is False
        assert is_safe_ref("HEAD\n") is False

    def test_commit_override_with_newline_never_reaches_git(self):
        runner = StubGit()
        Environment({"PERCY_COMMIT": "abc123\n"}, git_runner=runner).commit_data()
        assert all(call[1] != "abc123\n" for call in runner.calls if call[0] == "show")

    def test_long_refs_are_rejected(self):
        assert is_safe_ref("a" * 100)
        assert not is_safe_ref("a" * 101)

    def test_unsafe_ref_never_reaches_git(self):
        runner = StubGit({"show HEAD": "unexpected"})
        assert raw_commit_data("HEAD && echo pwned", runner) == ""
        assert runner.calls == []

    def test_safe_ref_uses_fixed_format(self):
        runner = StubGit()
        raw_commit_data("HEAD^", runner)
        assert runner.calls == [["show", "HEAD^", "--quiet", f"--format={GIT_COMMIT_FORMAT}"]]


class TestRunGit:
    def test_missing_binary_yields_empty(self, monkeypatch):
        def boom(*args, **kwargs):
            raise FileNotFoundError("git")

        monkeypatch.setattr(git.subprocess, "run", boom)
        assert run_git(["status"]) == ""

    def test_nonzero_exit_yields_empty(self, monkeypatch):
        monkeypatch.setattr(
            git.subprocess,
            "run",
            lambda *a, **kw: subprocess.CompletedProcess(a, 128, stdout="", stderr="fatal"),
        )
        assert run_git(["rev-parse", "HEAD"]) == ""

    def test_stdout_is_stripped(self, monkeypatch):
        monkeypatch.setattr(
            git.subprocess,
            "run",
            lambda *a, **kw: subprocess.CompletedProcess(a, 0, stdout="main\n", stderr=""),
        )
        assert run_git(["rev-parse", "--abbrev-ref", "HEAD"]) == "main"

    def test_raw_branch(self):
        runner = StubGit({"rev-parse --abbrev-ref HEAD": "feature/x"})
        assert raw_branch(runner) == "feature/x"


class TestParsing:
    def test_all_fields(self):
        commit = parse_commit(format_commit())
        assert commit.sha == "a" * 40
        assert commit.author_name == "Ada Author"
        assert commit.author_email == "ada@example.com"
        assert commit.committer_name == "Carl Committer"
        assert commit.committer_email == "carl@example.com"
        assert commit.committed_at == "2024-01-02 03:04:05 +0000"
        assert commit.message == "A commit message"

    def test_multiline_message_is_kept_whole(self):
        formatted = format_commit(message="Subject line\n\nBody paragraph\nsecond line")
        assert parse_field(formatted, "message") == "Subject line\n\nBody paragraph\nsecond line"

    def test_empty_output_yields_none(self):
        assert parse_field("", "sha") is None
        assert parse_commit("").sha is None
