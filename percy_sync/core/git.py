"""Local git introspection for commit and branch metadata.

All git access goes through a ``GitRunner``: a callable taking an argument
list and returning stripped stdout, or ``""`` when git is missing, the
working directory is not a repository, or the command fails. Nothing in
this module raises.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

GitRunner = Callable[[Sequence[str]], str]

# The message placeholder must stay last: %B may span several lines.
GIT_COMMIT_FORMAT = "%n".join(
    [
        "COMMIT_SHA:%H",
        "AUTHOR_NAME:%an",
        "AUTHOR_EMAIL:%ae",
        "COMMITTER_NAME:%cn",
        "COMMITTER_EMAIL:%ce",
        "COMMITTED_DATE:%ai",
        "COMMIT_MESSAGE:%B",
    ]
)

MAX_REF_LENGTH = 100
_SAFE_REF = re.compile(r"[0-9a-zA-Z^]+")

_FIELD_PATTERNS: dict[str, re.Pattern[str]] = {
    "sha": re.compile(r"COMMIT_SHA:(.*)"),
    "author_name": re.compile(r"AUTHOR_NAME:(.*)"),
    "author_email": re.compile(r"AUTHOR_EMAIL:(.*)"),
    "committer_name": re.compile(r"COMMITTER_NAME:(.*)"),
    "committer_email": re.compile(r"COMMITTER_EMAIL:(.*)"),
    "committed_at": re.compile(r"COMMITTED_DATE:(.*)"),
    "message": re.compile(r"COMMIT_MESSAGE:(.*)", re.DOTALL),
}


class GitCommit(BaseModel):
    """Fields parsed out of ``git show --format=GIT_COMMIT_FORMAT``."""

    model_config = ConfigDict(frozen=True)

    sha: str | None = None
    author_name: str | None = None
    author_email: str | None = None
    committer_name: str | None = None
    committer_email: str | None = None
    committed_at: str | None = None
    message: str | None = None


def run_git(args: Sequence[str], cwd: Path | None = None) -> str:
    """Run ``git`` with a fixed argument list and return stripped stdout."""
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=cwd,
            check=False,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        logger.debug("git %s unavailable: %s", " ".join(args), exc)
        return ""
    if completed.returncode != 0:
        logger.debug(
            "git %s exited with %d", " ".join(args), completed.returncode
        )
        return ""
    return completed.stdout.strip()


def is_safe_ref(ref: str) -> bool:
    """Whether *ref* may be handed to ``git show``.

    Only alphanumerics and ``^`` are allowed, up to ``MAX_REF_LENGTH``
    characters.
    """
    return len(ref) <= MAX_REF_LENGTH and _SAFE_REF.fullmatch(ref) is not None


def raw_commit_data(ref: str, runner: GitRunner = run_git) -> str:
    """Return formatted ``git show`` output for *ref*, or ``""``."""
    if not is_safe_ref(ref):
        logger.debug("Refusing to pass unsafe ref to git: %r", ref[:MAX_REF_LENGTH])
        return ""
    return runner(["show", ref, "--quiet", f"--format={GIT_COMMIT_FORMAT}"])


def raw_branch(runner: GitRunner = run_git) -> str:
    """Return the checked-out branch name, or ``""``."""
    return runner(["rev-parse", "--abbrev-ref", "HEAD"])


def parse_field(formatted: str, field: str) -> str | None:
    """Extract one field from formatted commit output."""
    match = _FIELD_PATTERNS[field].search(formatted or "")
    if match is None:
        return None
    return match.group(1)


def parse_commit(formatted: str) -> GitCommit:
    """Parse every field of formatted commit output."""
    return GitCommit(**{field: parse_field(formatted, field) for field in _FIELD_PATTERNS})
