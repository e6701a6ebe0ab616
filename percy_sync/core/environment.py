"""CI environment resolution — which CI are we in, and what are we building?

Every value is derived from three layers, highest precedence first:

1. ``PERCY_*`` override variables, applied per field for every provider.
2. The provider's own variables. The provider is the first entry of
   ``CI_PROVIDERS`` whose predicate matches the environment mapping.
3. Local git, for branch and commit only, when the provider left them
   empty.

The resolver holds a reference to the caller's mapping and re-reads it on
every access. Nothing is cached, and nothing here raises: unavailable data
comes back as ``None`` (or the documented default).
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Mapping

from percy_sync.core.git import (
    GitRunner,
    parse_commit,
    parse_field,
    raw_branch,
    raw_commit_data,
    run_git,
)
from percy_sync.models.commit import CommitContext, CommitData

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "master"
UNKNOWN_CI = "CI/unknown"
MAX_NONCE_LENGTH = 60

JENKINS_BOT_NAME = "Jenkins"
JENKINS_BOT_EMAIL = "nobody@nowhere"

Predicate = Callable[[Mapping[str, str]], bool]
Lookup = Callable[[Mapping[str, str]], str | None]


# ---------------------------------------------------------------------------
# Provider detection
# ---------------------------------------------------------------------------


def _is_travis(env: Mapping[str, str]) -> bool:
    return bool(env.get("TRAVIS_BUILD_ID"))


def _is_jenkins_prb(env: Mapping[str, str]) -> bool:
    # Pull Request Builder plugin.
    return bool(env.get("JENKINS_URL")) and bool(env.get("ghprbPullId"))


def _is_jenkins(env: Mapping[str, str]) -> bool:
    return bool(env.get("JENKINS_URL"))


def _is_circle(env: Mapping[str, str]) -> bool:
    return bool(env.get("CIRCLECI"))


def _is_codeship(env: Mapping[str, str]) -> bool:
    return env.get("CI_NAME") == "codeship"


def _is_drone(env: Mapping[str, str]) -> bool:
    return env.get("DRONE") == "true"


def _is_semaphore(env: Mapping[str, str]) -> bool:
    return env.get("SEMAPHORE") == "true"


def _is_buildkite(env: Mapping[str, str]) -> bool:
    return env.get("BUILDKITE") == "true"


def _is_heroku(env: Mapping[str, str]) -> bool:
    return bool(env.get("HEROKU_TEST_RUN_ID"))


def _is_gitlab(env: Mapping[str, str]) -> bool:
    return env.get("GITLAB_CI") == "true"


def _is_azure(env: Mapping[str, str]) -> bool:
    return env.get("TF_BUILD") == "True"


def _is_appveyor(env: Mapping[str, str]) -> bool:
    return env.get("APPVEYOR") in ("True", "true")


def _is_probo(env: Mapping[str, str]) -> bool:
    return env.get("PROBO_ENVIRONMENT") == "TRUE"


def _is_bitbucket(env: Mapping[str, str]) -> bool:
    return bool(env.get("BITBUCKET_BUILD_NUMBER"))


def _is_github(env: Mapping[str, str]) -> bool:
    return env.get("GITHUB_ACTIONS") == "true"


def _is_netlify(env: Mapping[str, str]) -> bool:
    return env.get("NETLIFY") == "true"


def _is_generic_ci(env: Mapping[str, str]) -> bool:
    return bool(env.get("CI"))


# Order matters: first match wins, and the generic CI flag must stay last.
CI_PROVIDERS: tuple[tuple[str, Predicate], ...] = (
    ("travis", _is_travis),
    ("jenkins-prb", _is_jenkins_prb),
    ("jenkins", _is_jenkins),
    ("circle", _is_circle),
    ("codeship", _is_codeship),
    ("drone", _is_drone),
    ("semaphore", _is_semaphore),
    ("buildkite", _is_buildkite),
    ("heroku", _is_heroku),
    ("gitlab", _is_gitlab),
    ("azure", _is_azure),
    ("appveyor", _is_appveyor),
    ("probo", _is_probo),
    ("bitbucket", _is_bitbucket),
    ("github", _is_github),
    ("netlify", _is_netlify),
    (UNKNOWN_CI, _is_generic_ci),
)


def detect_ci(env: Mapping[str, str]) -> str | None:
    """Return the identifier of the first provider matching *env*."""
    for name, predicate in CI_PROVIDERS:
        if predicate(env):
            return name
    return None


# ---------------------------------------------------------------------------
# Per-provider variable lookups
# ---------------------------------------------------------------------------


def _var(name: str, *fallbacks: str) -> Lookup:
    """Lookup returning the first non-empty variable among *name*, *fallbacks*."""
    names = (name, *fallbacks)

    def lookup(env: Mapping[str, str]) -> str | None:
        for candidate in names:
            value = env.get(candidate)
            if value:
                return value
        return None

    return lookup


def _unless_false(flag: str, value: str | None = None) -> Lookup:
    """Read *value* (default *flag*) unless *flag* is the literal string ``"false"``."""

    def lookup(env: Mapping[str, str]) -> str | None:
        if env.get(flag) == "false":
            return None
        return env.get(value or flag) or None

    return lookup


def _last_path_segment(name: str) -> Lookup:
    def lookup(env: Mapping[str, str]) -> str | None:
        value = env.get(name)
        if not value:
            return None
        return value.split("/")[-1] or None

    return lookup


def _github_branch(env: Mapping[str, str]) -> str | None:
    ref = env.get("GITHUB_REF")
    if ref and ref.startswith("refs/"):
        return re.sub(r"^refs/\w+?/", "", ref)
    return ref or None


def _semaphore_nonce(env: Mapping[str, str]) -> str | None:
    workflow_id = env.get("SEMAPHORE_WORKFLOW_ID")
    if workflow_id:
        return workflow_id
    branch_id = env.get("SEMAPHORE_BRANCH_ID")
    build_number = env.get("SEMAPHORE_BUILD_NUMBER")
    if branch_id and build_number:
        return f"{branch_id}/{build_number}"
    return None


def reversed_build_tag(build_tag: str) -> str:
    """Jenkins nonce: ``BUILD_TAG`` reversed, cut to ``MAX_NONCE_LENGTH``.

    The unique build number sits at the end of the tag, so reversing keeps
    it inside the truncated window.
    """
    return build_tag[::-1][:MAX_NONCE_LENGTH]


def _jenkins_nonce(env: Mapping[str, str]) -> str | None:
    build_tag = env.get("BUILD_TAG")
    if not build_tag:
        return None
    return reversed_build_tag(build_tag)


def _azure_total_shards(env: Mapping[str, str]) -> str | None:
    # SYSTEM_TOTALJOBSINPHASE is also set for non-parallel matrix builds.
    if env.get("SYSTEM_PARALLELEXECUTIONTYPE") == "MultiMachine":
        return env.get("SYSTEM_TOTALJOBSINPHASE") or None
    return None


_COMMIT_SHA: dict[str, Lookup] = {
    "jenkins-prb": _var("ghprbActualCommit", "GIT_COMMIT"),
    "jenkins": _var("GIT_COMMIT"),
    "circle": _var("CIRCLE_SHA1"),
    "codeship": _var("CI_COMMIT_ID"),
    "drone": _var("DRONE_COMMIT"),
    "semaphore": _var("REVISION", "SEMAPHORE_GIT_PR_SHA", "SEMAPHORE_GIT_SHA"),
    "buildkite": _var("BUILDKITE_COMMIT"),
    "heroku": _var("HEROKU_TEST_RUN_COMMIT_VERSION"),
    "gitlab": _var("CI_COMMIT_SHA"),
    "azure": _var("SYSTEM_PULLREQUEST_SOURCECOMMITID", "BUILD_SOURCEVERSION"),
    "appveyor": _var("APPVEYOR_PULL_REQUEST_HEAD_COMMIT", "APPVEYOR_REPO_COMMIT"),
    "probo": _var("COMMIT_REF"),
    "bitbucket": _var("BITBUCKET_COMMIT"),
    "github": _var("GITHUB_SHA"),
    "netlify": _var("COMMIT_REF"),
}

_BRANCH: dict[str, Lookup] = {
    "jenkins-prb": _var("ghprbSourceBranch"),
    "jenkins": _var("CHANGE_BRANCH", "GIT_BRANCH"),
    "circle": _var("CIRCLE_BRANCH"),
    "codeship": _var("CI_BRANCH"),
    "drone": _var("DRONE_BRANCH"),
    "semaphore": _var("BRANCH_NAME", "SEMAPHORE_GIT_PR_BRANCH", "SEMAPHORE_GIT_BRANCH"),
    "buildkite": _var("BUILDKITE_BRANCH"),
    "heroku": _var("HEROKU_TEST_RUN_BRANCH"),
    "gitlab": _var("CI_COMMIT_REF_NAME"),
    "azure": _var("SYSTEM_PULLREQUEST_SOURCEBRANCH", "BUILD_SOURCEBRANCHNAME"),
    "appveyor": _var("APPVEYOR_PULL_REQUEST_HEAD_REPO_BRANCH", "APPVEYOR_REPO_BRANCH"),
    "probo": _var("BRANCH_NAME"),
    "bitbucket": _var("BITBUCKET_BRANCH"),
    "github": _github_branch,
    "netlify": _var("HEAD"),
}

_PULL_REQUEST: dict[str, Lookup] = {
    "travis": _unless_false("TRAVIS_PULL_REQUEST"),
    "jenkins-prb": _var("ghprbPullId"),
    "jenkins": _var("CHANGE_ID"),
    "circle": _last_path_segment("CI_PULL_REQUESTS"),
    # Codeship always reports "false" in CI_PULL_REQUEST, so it has no entry.
    "drone": _var("CI_PULL_REQUEST"),
    "semaphore": _var("PULL_REQUEST_NUMBER", "SEMAPHORE_GIT_PR_NUMBER"),
    "buildkite": _unless_false("BUILDKITE_PULL_REQUEST"),
    "heroku": _var("HEROKU_PR_NUMBER"),
    "gitlab": _var("CI_MERGE_REQUEST_IID", "CI_EXTERNAL_PULL_REQUEST_IID"),
    "azure": _var("SYSTEM_PULLREQUEST_PULLREQUESTID", "SYSTEM_PULLREQUEST_PULLREQUESTNUMBER"),
    "appveyor": _var("APPVEYOR_PULL_REQUEST_NUMBER"),
    "probo": _last_path_segment("PULL_REQUEST_LINK"),
    "bitbucket": _var("BITBUCKET_PR_ID"),
    "netlify": _unless_false("PULL_REQUEST", "REVIEW_ID"),
}

_PARALLEL_NONCE: dict[str, Lookup] = {
    "travis": _var("TRAVIS_BUILD_NUMBER"),
    "jenkins-prb": _var("BUILD_NUMBER"),
    "jenkins": _jenkins_nonce,
    "circle": _var("CIRCLE_WORKFLOW_ID", "CIRCLE_BUILD_NUM"),
    "codeship": _var("CI_BUILD_NUMBER", "CI_BUILD_ID"),
    "drone": _var("DRONE_BUILD_NUMBER"),
    "semaphore": _semaphore_nonce,
    "buildkite": _var("BUILDKITE_BUILD_ID"),
    "heroku": _var("HEROKU_TEST_RUN_ID"),
    "gitlab": _var("CI_PIPELINE_ID"),
    "azure": _var("BUILD_BUILDID"),
    "appveyor": _var("APPVEYOR_BUILD_ID"),
    "probo": _var("BUILD_ID"),
    "bitbucket": _var("BITBUCKET_BUILD_NUMBER"),
    "github": _var("GITHUB_RUN_ID"),
}

_PARALLEL_TOTAL: dict[str, Lookup] = {
    # CI_NODE_TOTAL on Travis comes from the knapsack gem.
    "travis": _var("CI_NODE_TOTAL"),
    "circle": _var("CIRCLE_NODE_TOTAL"),
    "codeship": _var("CI_NODE_TOTAL"),
    "semaphore": _var("SEMAPHORE_THREAD_COUNT"),
    "buildkite": _var("BUILDKITE_PARALLEL_JOB_COUNT"),
    "heroku": _var("CI_NODE_TOTAL"),
    "azure": _azure_total_shards,
}


_LEADING_INT = re.compile(r"\s*([-+]?\d+)")


def _parse_int(value: str | None) -> int | None:
    if not value:
        return None
    # Leading integer only, so "3abc" and "3.0" both read as 3.
    match = _LEADING_INT.match(value)
    if match is None:
        logger.debug("Ignoring non-integer shard count %r", value)
        return None
    return int(match.group(1))


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class Environment:
    """Resolve build identity from an environment mapping and local git.

    Parameters
    ----------
    env:
        Mapping of environment variables. Defaults to ``os.environ`` itself,
        not a copy, so later changes are visible.
    git_runner:
        Callable used for every git invocation; see ``percy_sync.core.git``.
    """

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        git_runner: GitRunner | None = None,
    ) -> None:
        self._env: Mapping[str, str] = os.environ if env is None else env
        self._git: GitRunner = git_runner or run_git

    def _get(self, name: str) -> str | None:
        return self._env.get(name) or None

    def _lookup(self, table: dict[str, Lookup]) -> str | None:
        ci = self.ci
        if ci is None or ci not in table:
            return None
        return table[ci](self._env)

    # ------------------------------------------------------------------
    # CI identity
    # ------------------------------------------------------------------

    @property
    def ci(self) -> str | None:
        """Identifier of the detected CI provider, or ``None``."""
        return detect_ci(self._env)

    @property
    def ci_version(self) -> str | None:
        """CI identifier with a version suffix where the provider exposes one."""
        ci = self.ci
        if ci == "gitlab":
            return f"gitlab/{self._env.get('CI_SERVER_VERSION')}"
        if ci == "github":
            return f"github/{self._get('PERCY_GITHUB_ACTION') or 'unknown'}"
        return ci

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    @property
    def commit_sha(self) -> str | None:
        override = self._get("PERCY_COMMIT")
        if override:
            return override

        ci = self.ci
        if ci == "travis":
            sha = self._get("TRAVIS_COMMIT")
            if self.pull_request_number and self._get("TRAVIS_PULL_REQUEST_SHA"):
                sha = self._get("TRAVIS_PULL_REQUEST_SHA")
        elif ci == "jenkins" and self._is_jenkins_merge_commit():
            # The checked-out HEAD is Jenkins' own merge; the real commit is its parent.
            return self._parent_commit_sha()
        else:
            sha = self._lookup(_COMMIT_SHA)

        # Buildkite mixes SHAs and the literal "HEAD" in BUILDKITE_COMMIT.
        if ci == "buildkite" and sha == "HEAD":
            return None
        if sha:
            return sha
        return parse_field(raw_commit_data("HEAD", self._git), "sha")

    @property
    def target_commit_sha(self) -> str | None:
        return self._get("PERCY_TARGET_COMMIT")

    def _is_jenkins_merge_commit(self) -> bool:
        commit = parse_commit(raw_commit_data("HEAD", self._git))
        bot = (JENKINS_BOT_NAME, JENKINS_BOT_EMAIL)
        identities = {
            (commit.author_name, commit.author_email),
            (commit.committer_name, commit.committer_email),
        }
        if bot not in identities:
            return False
        # Merge commit 'ec4d24c3d22f3c95e34af95c1fda2d462396d885' into HEAD
        message = commit.message or ""
        return message[:13] == "Merge commit " and message[55:] == " into HEAD"

    def _parent_commit_sha(self) -> str | None:
        return parse_field(raw_commit_data("HEAD^", self._git), "sha")

    # ------------------------------------------------------------------
    # Branches and pull requests
    # ------------------------------------------------------------------

    @property
    def branch(self) -> str:
        override = self._get("PERCY_BRANCH")
        if override:
            return override

        if self.ci == "travis":
            if self.pull_request_number and self._get("TRAVIS_PULL_REQUEST_BRANCH"):
                result = self._get("TRAVIS_PULL_REQUEST_BRANCH")
            else:
                result = self._get("TRAVIS_BRANCH")
        else:
            result = self._lookup(_BRANCH)

        if not result:
            result = raw_branch(self._git)
        if not result:
            # Not in a git repo and no CI data: assume the default branch.
            return DEFAULT_BRANCH
        return result

    @property
    def target_branch(self) -> str | None:
        return self._get("PERCY_TARGET_BRANCH")

    @property
    def pull_request_number(self) -> str | None:
        override = self._get("PERCY_PULL_REQUEST")
        if override:
            return override
        return self._lookup(_PULL_REQUEST)

    @property
    def project(self) -> str | None:
        return self._get("PERCY_PROJECT")

    # ------------------------------------------------------------------
    # Parallelism
    # ------------------------------------------------------------------

    @property
    def parallel_nonce(self) -> str | None:
        """Identifier shared by every shard of one parallel CI build."""
        override = self._get("PERCY_PARALLEL_NONCE")
        if override:
            return override
        return self._lookup(_PARALLEL_NONCE)

    @property
    def parallel_total_shards(self) -> int | None:
        override = self._get("PERCY_PARALLEL_TOTAL")
        if override:
            return _parse_int(override)
        return _parse_int(self._lookup(_PARALLEL_TOTAL))

    @property
    def partial_build(self) -> bool:
        partial = self._get("PERCY_PARTIAL_BUILD")
        return bool(partial) and partial != "0"

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def commit_data(self) -> CommitData:
        """Branch, sha and git metadata for the commit under test.

        Structured git output wins over the ``GIT_AUTHOR_*`` and
        ``GIT_COMMITTER_*`` variables set by the Jenkins git plugin; those
        are only used when git yields nothing.
        """
        sha = self.commit_sha
        result = {
            "branch": self.branch,
            "sha": sha,
            "author_name": self._get("GIT_AUTHOR_NAME"),
            "author_email": self._get("GIT_AUTHOR_EMAIL"),
            "committer_name": self._get("GIT_COMMITTER_NAME"),
            "committer_email": self._get("GIT_COMMITTER_EMAIL"),
        }

        formatted = raw_commit_data(sha, self._git) if sha else ""
        if not formatted:
            formatted = raw_commit_data("HEAD", self._git)
        if not formatted:
            return CommitData(**result)

        commit = parse_commit(formatted)
        result.update(
            sha=sha or commit.sha,
            message=commit.message,
            committed_at=commit.committed_at,
            author_name=commit.author_name,
            author_email=commit.author_email,
            committer_name=commit.committer_name,
            committer_email=commit.committer_email,
        )
        return CommitData(**result)

    def commit_context(self, commit_data: CommitData | None = None) -> CommitContext:
        """Resolve every field the service needs into one snapshot."""
        commit = commit_data or self.commit_data()
        return CommitContext(
            branch=commit.branch,
            sha=commit.sha,
            target_branch=self.target_branch,
            target_sha=self.target_commit_sha,
            pull_request_number=self.pull_request_number,
            author_name=commit.author_name,
            author_email=commit.author_email,
            committer_name=commit.committer_name,
            committer_email=commit.committer_email,
            committed_at=commit.committed_at,
            message=commit.message,
            parallel_nonce=self.parallel_nonce,
            parallel_total_shards=self.parallel_total_shards,
            partial_build=self.partial_build,
            ci_identifier=self.ci,
            ci_version=self.ci_version,
        )
