from __future__ import annotations

from pathlib import Path
from typing import Any

import click

from .config import load_config
from .errors import LinearMergeError, describe
from .git import GitClient
from .github import GitHubClient
from .logging import configure_logging
from .models import AppConfig
from .orchestrator import MergeOrchestrator
from .process import CommandRunner, ensure_tool


class RuntimeContext:
    def __init__(self, repo: Path, config_path: Path | None, overrides: dict[str, Any]):
        self.repo = repo.resolve()
        self.config: AppConfig = load_config(config_path=config_path, cli_overrides=overrides)

    def build_orchestrator(self) -> MergeOrchestrator:
        tools = self.config.tools
        ensure_tool(tools.git_binary)
        ensure_tool(tools.gh_binary)
        runner = CommandRunner(cwd=self.repo)
        return MergeOrchestrator(
            self.config,
            GitClient(runner, tools.git_binary),
            GitHubClient(runner, tools.gh_binary),
        )


def _collect_overrides(**options: Any) -> dict[str, Any]:
    keys = {
        "remote": "merge.remote",
        "ignore_ci": "merge.ignore_ci",
        "wait_for_ci": "merge.wait_for_ci",
        "dry_run": "merge.dry_run",
        "retain_branch": "merge.retain_branch",
        "ci_poll_interval": "timing.ci_poll_interval",
        "ci_wait_timeout": "timing.ci_wait_timeout",
        "push_retry_interval": "timing.push_retry_interval",
        "wait_after_rebase": "timing.wait_after_rebase",
    }
    overrides: dict[str, Any] = {}
    for name, dotted in keys.items():
        value = options.get(name)
        # Flags only override when set so config files can turn them on.
        if value is None or value is False:
            continue
        overrides[dotted] = value
    if options.get("no_autosquash"):
        overrides["merge.autosquash"] = False
    return overrides


def _fail(exc: LinearMergeError) -> click.ClickException:
    error = click.ClickException(describe(exc))
    error.exit_code = exc.exit_code
    return error


@click.command()
@click.argument("branch_or_pr", required=False)
@click.option("--ignore-ci", is_flag=True, default=False, help="Ignore CI and merge straightaway.")
@click.option("--wait-for-ci", is_flag=True, default=False, help="Poll until CI is no longer incomplete.")
@click.option("--ci-poll-interval", type=float, default=None, help="Seconds between CI polls.")
@click.option("--ci-wait-timeout", type=float, default=None, help="Give up waiting for CI after this many seconds.")
@click.option(
    "-i",
    "--push-retry-interval",
    type=float,
    default=None,
    help="Seconds to wait before the single retry of the final push.",
)
@click.option(
    "-w",
    "--wait-after-rebase",
    type=float,
    default=None,
    help="Seconds to wait after force-pushing the rebased branch.",
)
@click.option("-d", "--dry-run", is_flag=True, default=False, help="Check approval and CI without merging.")
@click.option("-r", "--retain-branch", is_flag=True, default=False, help="Keep the local branch after merging.")
@click.option("-R", "--remote", type=str, default=None, help="Remote to fetch the base from and push it to.")
@click.option("--no-autosquash", is_flag=True, default=False, help="Do not squash fixup commits while rebasing.")
@click.option("--repo", type=click.Path(path_type=Path, file_okay=False, exists=True), default=Path.cwd())
@click.option("--config", "config_path", type=click.Path(path_type=Path, dir_okay=False), default=None)
@click.option("--verbose", is_flag=True, default=False)
def main(
    branch_or_pr: str | None,
    repo: Path,
    config_path: Path | None,
    verbose: bool,
    **options: Any,
) -> None:
    """Merge a pull request, ensuring a linear history.

    BRANCH_OR_PR is a PR number, a branch name, or owner:branch for a fork;
    it defaults to the current branch.
    """
    configure_logging(verbose=verbose)
    try:
        runtime = RuntimeContext(repo, config_path, _collect_overrides(**options))
        outcome = runtime.build_orchestrator().run(branch_or_pr)
    except LinearMergeError as exc:
        raise _fail(exc) from exc

    if outcome.dry_run:
        click.echo(f"{outcome.branch} is ready to merge into {outcome.base} (dry run)")
    else:
        click.echo(f"{outcome.branch} merged into {outcome.base}")
