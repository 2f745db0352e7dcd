from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import pytest

from linear_merge.errors import GitError
from linear_merge.models import AppConfig, PrStatus, RepoInfo

MUTATING_GIT_CALLS = frozenset(
    {
        "add_remote",
        "remove_remote",
        "fetch_branch",
        "checkout",
        "checkout_tracking",
        "rebase",
        "abort_rebase",
        "force_push_with_lease",
        "merge_ff_only",
        "push",
        "delete_branch",
    }
)


def git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(["git", *args], cwd=cwd, check=True, text=True, capture_output=True)
    return proc.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    (repo / name).write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def configure_identity(repo: Path) -> None:
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "user.email", "test@example.com")


@pytest.fixture()
def git_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "repo"
    repo.mkdir(parents=True, exist_ok=True)

    git(repo, "init")
    git(repo, "checkout", "-b", "main")
    configure_identity(repo)

    commit_file(repo, "README.md", "seed\n", "init")
    return repo


@pytest.fixture()
def cloned_repo(tmp_path: Path, git_repo: Path) -> Path:
    """A working clone of a bare ``origin`` seeded from ``git_repo``."""
    origin = tmp_path / "origin.git"
    subprocess.run(["git", "clone", "--bare", str(git_repo), str(origin)], check=True, capture_output=True)
    clone = tmp_path / "clone"
    subprocess.run(["git", "clone", str(origin), str(clone)], check=True, capture_output=True)
    configure_identity(clone)
    return clone


def status_payload(
    review: str | None = "APPROVED",
    checks: list[dict[str, Any]] | None = None,
    base: str = "main",
) -> dict[str, Any]:
    return {"baseRefName": base, "reviewDecision": review, "statusCheckRollup": checks or []}


def check_run(name: str, status: str = "COMPLETED", conclusion: str | None = "SUCCESS", workflow: str = "ci") -> dict[str, Any]:
    return {
        "__typename": "CheckRun",
        "name": name,
        "workflowName": workflow,
        "status": status,
        "conclusion": conclusion,
    }


class FakeGit:
    """Records GitClient calls against an in-memory view of refs."""

    def __init__(self, current: str = "main"):
        self.calls: list[tuple[str, ...]] = []
        self.current = current
        self.shas: dict[str, str] = {}
        self.remote_names = ["origin"]
        self.failures: dict[str, list[Exception]] = {}
        self.rebased_sha: str | None = None
        self.local_branches: set[str] = {current}
        self.rebase_started = True

    def fail(self, name: str, times: int = 1) -> None:
        self.failures.setdefault(name, []).extend(GitError(f"{name} failed") for _ in range(times))

    def _record(self, name: str, *args: str) -> None:
        self.calls.append((name, *args))
        pending = self.failures.get(name)
        if pending:
            raise pending.pop(0)

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def mutations(self) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] in MUTATING_GIT_CALLS]

    def current_branch(self) -> str:
        self._record("current_branch")
        return self.current

    def rev_parse(self, ref: str) -> str:
        self._record("rev_parse", ref)
        return self.shas[ref]

    def remotes(self) -> list[str]:
        self._record("remotes")
        return list(self.remote_names)

    def add_remote(self, name: str, url: str) -> None:
        self._record("add_remote", name, url)
        self.remote_names.append(name)

    def remove_remote(self, name: str) -> None:
        self._record("remove_remote", name)
        self.remote_names.remove(name)

    def fetch_branch(self, remote: str, branch: str) -> None:
        self._record("fetch_branch", remote, branch)

    def has_local_branch(self, branch: str) -> bool:
        self._record("has_local_branch", branch)
        return branch in self.local_branches

    def checkout(self, branch: str) -> None:
        self._record("checkout", branch)
        self.current = branch

    def checkout_tracking(self, branch: str, remote: str) -> None:
        self._record("checkout_tracking", branch, remote)
        self.local_branches.add(branch)
        self.current = branch

    def rebase(self, onto: str, autosquash: bool = False) -> None:
        self._record("rebase", onto, str(autosquash))
        if self.rebased_sha is not None:
            self.shas[self.current] = self.rebased_sha

    def rebase_in_progress(self) -> bool:
        self._record("rebase_in_progress")
        return self.rebase_started

    def abort_rebase(self) -> None:
        self._record("abort_rebase")

    def force_push_with_lease(self, remote: str, branch: str, expected_sha: str) -> None:
        self._record("force_push_with_lease", remote, branch, expected_sha)

    def merge_ff_only(self, branch: str) -> None:
        self._record("merge_ff_only", branch)

    def push(self, remote: str, branch: str) -> None:
        self._record("push", remote, branch)

    def delete_branch(self, branch: str) -> None:
        self._record("delete_branch", branch)


class FakeGitHub:
    def __init__(self, repo: RepoInfo | None = None):
        self.repo = repo or RepoInfo(owner="acme", name="widgets", default_branch="main")
        self.prs: dict[str, dict[str, Any]] = {}
        self.statuses: dict[str, list[dict[str, Any]]] = {}
        self.fork_urls: dict[tuple[str, str], str] = {}
        self.queries: list[tuple[str, ...]] = []

    def repo_info(self) -> RepoInfo:
        self.queries.append(("repo_info",))
        return self.repo

    def pr_view(self, token: str, fields: str) -> dict[str, Any]:
        self.queries.append(("pr_view", token, fields))
        return self.prs[token]

    def pr_status(self, token: str) -> PrStatus:
        self.queries.append(("pr_status", token))
        snapshots = self.statuses[token]
        payload = snapshots.pop(0) if len(snapshots) > 1 else snapshots[0]
        return PrStatus.model_validate(payload)

    def fork_url(self, owner: str, repo_name: str) -> str:
        self.queries.append(("fork_url", owner, repo_name))
        return self.fork_urls[(owner, repo_name)]


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture()
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture()
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture()
def app_config() -> AppConfig:
    return AppConfig()
