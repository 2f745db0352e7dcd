from __future__ import annotations

from pathlib import Path

from .errors import GitError, ProcessError
from .process import CommandRunner

NO_EDITOR_ENV = {"GIT_SEQUENCE_EDITOR": ":", "GIT_EDITOR": ":"}


def remote_branch_refspec(remote: str, branch: str) -> str:
    return f"+refs/heads/{branch}:refs/remotes/{remote}/{branch}"


class GitClient:
    def __init__(self, runner: CommandRunner, git_binary: str = "git"):
        self.runner = runner
        self.git_binary = git_binary

    def _run_git(
        self,
        args: list[str],
        operation: str,
        quiet: bool = False,
        env: dict[str, str] | None = None,
    ) -> str:
        try:
            return self.runner.run([self.git_binary, *args], quiet=quiet, env=env)
        except ProcessError as exc:
            raise GitError(operation) from exc

    def current_branch(self) -> str:
        return self._run_git(["branch", "--show-current"], "getting current branch", quiet=True)

    def rev_parse(self, ref: str) -> str:
        return self._run_git(["rev-parse", "--verify", f"{ref}^{{commit}}"], f"reading sha of {ref}", quiet=True)

    def remotes(self) -> list[str]:
        output = self._run_git(["remote"], "listing remotes", quiet=True)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def add_remote(self, name: str, url: str) -> None:
        self._run_git(["remote", "add", "--no-tags", name, url], f"adding remote {name}")

    def remove_remote(self, name: str) -> None:
        self._run_git(["remote", "remove", name], f"removing remote {name}")

    def fetch_branch(self, remote: str, branch: str) -> None:
        self._run_git(
            ["fetch", "--no-tags", remote, remote_branch_refspec(remote, branch)],
            f"fetching {branch} from {remote}",
        )

    def has_local_branch(self, branch: str) -> bool:
        try:
            self._run_git(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], f"looking up {branch}", quiet=True)
        except GitError:
            return False
        return True

    def checkout(self, branch: str) -> None:
        self._run_git(["checkout", branch], f"checking out {branch}")

    def checkout_tracking(self, branch: str, remote: str) -> None:
        self._run_git(
            ["checkout", "-b", branch, "--track", f"{remote}/{branch}"],
            f"creating {branch} tracking {remote}/{branch}",
        )

    def rebase(self, onto: str, autosquash: bool = False) -> None:
        if autosquash:
            # GIT_SEQUENCE_EDITOR and GIT_EDITOR take precedence over user config and env.
            self._run_git(
                ["rebase", "--interactive", "--autosquash", onto],
                f"rebasing onto {onto}",
                env=NO_EDITOR_ENV,
            )
        else:
            self._run_git(["rebase", onto], f"rebasing onto {onto}")

    def rebase_in_progress(self) -> bool:
        for state_dir in ("rebase-merge", "rebase-apply"):
            path = Path(self._run_git(["rev-parse", "--git-path", state_dir], "locating rebase state", quiet=True))
            if not path.is_absolute() and self.runner.cwd is not None:
                path = Path(self.runner.cwd) / path
            if path.exists():
                return True
        return False

    def abort_rebase(self) -> None:
        self._run_git(["rebase", "--abort"], "aborting rebase")

    def force_push_with_lease(self, remote: str, branch: str, expected_sha: str) -> None:
        self._run_git(
            ["push", f"--force-with-lease={branch}:{expected_sha}", remote, f"{branch}:{branch}"],
            f"force-pushing {branch} to {remote}",
        )

    def merge_ff_only(self, branch: str) -> None:
        self._run_git(["merge", "--ff-only", branch], f"fast-forward merging {branch}")

    def push(self, remote: str, branch: str) -> None:
        self._run_git(["push", remote, f"{branch}:{branch}"], f"pushing {branch} to {remote}")

    def delete_branch(self, branch: str) -> None:
        self._run_git(["branch", "-d", branch], f"deleting local branch {branch}")
