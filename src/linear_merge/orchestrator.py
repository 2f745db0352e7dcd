from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from .errors import (
    CiFailedError,
    DivergedBranchError,
    GitError,
    MergeNotFastForwardError,
    NotApprovedError,
    PushFailedError,
    RebaseConflictError,
)
from .git import GitClient
from .github import GitHubClient
from .logging import get_logger
from .models import (
    AppConfig,
    CiState,
    MergeOutcome,
    MergeStep,
    PrStatus,
    PullRequestReference,
    Resolution,
)
from .poller import Sleeper, StatusPoller
from .remotes import RemoteBindingManager
from .resolver import resolve_reference
from .status import ci_state, unsuccessful_checks

logger = get_logger(__name__)

GATE_STEPS = (MergeStep.APPROVAL_GATE, MergeStep.CI_GATE)
GIT_STEPS = (
    MergeStep.FETCH_HEAD,
    MergeStep.CHECKOUT_HEAD,
    MergeStep.SYNC_CHECK,
    MergeStep.FETCH_BASE,
    MergeStep.REBASE,
    MergeStep.PUSH_REBASED,
    MergeStep.FAST_FORWARD,
    MergeStep.PUSH_BASE,
    MergeStep.CLEANUP,
)


@dataclass(slots=True)
class MergeRun:
    reference: PullRequestReference
    outcome: MergeOutcome
    status: PrStatus | None = None
    head_remote: str = ""
    remote_sha: str = ""

    @property
    def branch(self) -> str:
        return self.reference.branch

    @property
    def base(self) -> str:
        return self.outcome.base


class MergeOrchestrator:
    """Drives one pull request through gates, rebase, fast-forward merge and push.

    Steps run strictly in the order of ``GATE_STEPS`` then ``GIT_STEPS``; a
    step only starts once the previous one returned, and any exception ends
    the run with the remaining steps untouched.
    """

    def __init__(
        self,
        config: AppConfig,
        git: GitClient,
        github: GitHubClient,
        sleep: Sleeper = time.sleep,
        poller: StatusPoller | None = None,
    ):
        self.config = config
        self.settings = config.merge
        self.timing = config.timing
        self.git = git
        self.github = github
        self.sleep = sleep
        self.poller = poller or StatusPoller(github, sleep=sleep)
        self.remotes = RemoteBindingManager(git, config.merge.remote)

    def run(self, token: str | None) -> MergeOutcome:
        repo = self.github.repo_info()
        current_branch = None if token else self.git.current_branch()
        resolution = resolve_reference(token, repo, self.github, current_branch=current_branch)
        return self.execute(resolution)

    def execute(self, resolution: Resolution) -> MergeOutcome:
        reference = resolution.reference
        run = MergeRun(reference=reference, outcome=MergeOutcome(branch=reference.branch))

        self._run_steps(run, GATE_STEPS)

        if self.settings.dry_run:
            logger.info("Dry run: %s would be merged into %s", reference.qualified_branch, run.base)
            run.outcome.dry_run = True
            run.outcome.completed.append(MergeStep.DRY_RUN)
            return run.outcome

        with self.remotes.bind(resolution.binding) as head_remote:
            run.head_remote = head_remote
            self._run_steps(run, GIT_STEPS)

        run.outcome.merged = True
        logger.info("Merged %s into %s", reference.qualified_branch, run.base)
        return run.outcome

    def _run_steps(self, run: MergeRun, steps: tuple[MergeStep, ...]) -> None:
        handlers = self._handlers()
        for step in steps:
            logger.debug("Step %s", step.value)
            handlers[step](run)
            run.outcome.completed.append(step)

    def _handlers(self) -> dict[MergeStep, Callable[[MergeRun], None]]:
        return {
            MergeStep.APPROVAL_GATE: self._approval_gate,
            MergeStep.CI_GATE: self._ci_gate,
            MergeStep.FETCH_HEAD: self._fetch_head,
            MergeStep.CHECKOUT_HEAD: self._checkout_head,
            MergeStep.SYNC_CHECK: self._sync_check,
            MergeStep.FETCH_BASE: self._fetch_base,
            MergeStep.REBASE: self._rebase,
            MergeStep.PUSH_REBASED: self._push_rebased,
            MergeStep.FAST_FORWARD: self._fast_forward,
            MergeStep.PUSH_BASE: self._push_base,
            MergeStep.CLEANUP: self._cleanup,
        }

    def _approval_gate(self, run: MergeRun) -> None:
        status = self.poller.fetch_status(run.reference.qualified_branch)
        run.status = status
        run.outcome.base = status.base_ref_name
        if not status.is_approved:
            raise NotApprovedError(f"{run.reference.qualified_branch} has not been approved")

    def _ci_gate(self, run: MergeRun) -> None:
        qualified = run.reference.qualified_branch
        if self.settings.ignore_ci:
            logger.info("Ignoring ci for %s", qualified)
            return

        assert run.status is not None
        if self.settings.wait_for_ci:
            run.status = self.poller.wait_for_ci(
                qualified,
                self.timing.ci_poll_interval,
                timeout=self.timing.ci_wait_timeout,
            )

        if ci_state(run.status) is CiState.SUCCESS:
            return

        labels: list[str] = []
        for check, state in unsuccessful_checks(run.status):
            logger.error("%s: %s is %s", check.workflow_name or "(no workflow)", check.name, state.value)
            labels.append(f"{check.label} ({state.value})")
        raise CiFailedError(
            f"some ci checks for {qualified} are incomplete or unsuccessful: {', '.join(labels)}",
            failing=labels,
        )

    def _fetch_head(self, run: MergeRun) -> None:
        self.git.fetch_branch(run.head_remote, run.branch)

    def _checkout_head(self, run: MergeRun) -> None:
        if self.git.has_local_branch(run.branch):
            self.git.checkout(run.branch)
        else:
            logger.info("No local branch %s; creating it from %s/%s", run.branch, run.head_remote, run.branch)
            self.git.checkout_tracking(run.branch, run.head_remote)

        current = self.git.current_branch()
        if current != run.branch:
            raise GitError(f"expected to be on {run.branch} after checkout but on {current or 'a detached HEAD'}")

    def _sync_check(self, run: MergeRun) -> None:
        local_sha = self.git.rev_parse(run.branch)
        remote_sha = self.git.rev_parse(f"{run.head_remote}/{run.branch}")
        if local_sha != remote_sha:
            raise DivergedBranchError(
                f"local {run.branch} ({local_sha[:12]}) is not in sync with "
                f"{run.head_remote}/{run.branch} ({remote_sha[:12]}); reconcile it and try again"
            )
        run.remote_sha = remote_sha

    def _fetch_base(self, run: MergeRun) -> None:
        self.git.fetch_branch(self.settings.remote, run.base)

    def _rebase(self, run: MergeRun) -> None:
        onto = f"{self.settings.remote}/{run.base}"
        try:
            self.git.rebase(onto, autosquash=self.settings.autosquash)
        except GitError as exc:
            if not self.git.rebase_in_progress():
                raise RebaseConflictError(
                    f"{run.branch} did not cleanly rebase onto {onto}: git refused to start the rebase; "
                    "fix the working tree and try again"
                ) from exc
            try:
                self.git.abort_rebase()
            except GitError as abort_exc:
                raise GitError(
                    f"{run.branch} failed to rebase onto {onto} and the rebase could not be aborted; "
                    "run `git rebase --abort` manually"
                ) from abort_exc
            raise RebaseConflictError(
                f"{run.branch} did not cleanly rebase onto {onto}; do so manually and try again"
            ) from exc

    def _push_rebased(self, run: MergeRun) -> None:
        # Force-pushing resets CI but keeps approvals; CI was already green for the same tree.
        local_sha = self.git.rev_parse(run.branch)
        if local_sha == run.remote_sha:
            logger.info("%s is already on top of %s/%s", run.branch, self.settings.remote, run.base)
            return

        self.git.force_push_with_lease(run.head_remote, run.branch, run.remote_sha)
        run.outcome.force_pushed = True
        logger.info("Waiting %ss for github to register the rebased %s", self.timing.wait_after_rebase, run.branch)
        self.sleep(self.timing.wait_after_rebase)

    def _fast_forward(self, run: MergeRun) -> None:
        if self.git.has_local_branch(run.base):
            self.git.checkout(run.base)
        else:
            self.git.checkout_tracking(run.base, self.settings.remote)

        try:
            self.git.merge_ff_only(run.branch)
        except GitError as exc:
            raise MergeNotFastForwardError(
                f"{run.branch} cannot be fast-forwarded onto {run.base}"
            ) from exc

    def _push_base(self, run: MergeRun) -> None:
        # Github accepts a push of the base branch to the tip of an approved PR as a
        # manual merge, but sometimes needs a few seconds to catch up.
        remote = self.settings.remote
        try:
            self.git.push(remote, run.base)
            return
        except GitError as exc:
            logger.info(
                "Pushing %s to %s failed (%s); this is normal; retrying in %ss",
                run.base,
                remote,
                exc.__cause__ or exc,
                self.timing.push_retry_interval,
            )

        self.sleep(self.timing.push_retry_interval)
        try:
            self.git.push(remote, run.base)
        except GitError as exc:
            raise PushFailedError(f"2nd attempt to push {run.base} to {remote} failed") from exc

    def _cleanup(self, run: MergeRun) -> None:
        if self.settings.retain_branch:
            logger.info("Retaining local branch %s", run.branch)
            return
        self.git.delete_branch(run.branch)
