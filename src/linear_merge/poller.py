from __future__ import annotations

import time
from collections.abc import Callable

from .errors import CiTimeoutError
from .github import GitHubClient
from .logging import get_logger
from .models import CiState, PrStatus
from .progress import spinner
from .status import ci_state

logger = get_logger(__name__)

Sleeper = Callable[[float], None]
Clock = Callable[[], float]


class StatusPoller:
    def __init__(
        self,
        github: GitHubClient,
        sleep: Sleeper = time.sleep,
        clock: Clock = time.monotonic,
    ):
        self.github = github
        self.sleep = sleep
        self.clock = clock

    def fetch_status(self, qualified_branch: str) -> PrStatus:
        return self.github.pr_status(qualified_branch)

    def wait_for_ci(
        self,
        qualified_branch: str,
        poll_interval: float,
        timeout: float | None = None,
    ) -> PrStatus:
        """Poll until CI leaves the incomplete state.

        Unbounded unless ``timeout`` is given, in which case
        ``CiTimeoutError`` is raised once it elapses with CI still running.
        """
        deadline = None if timeout is None else self.clock() + timeout
        attempts = 0
        with spinner(f"waiting for ci on {qualified_branch}"):
            while True:
                status = self.fetch_status(qualified_branch)
                attempts += 1
                if ci_state(status) is not CiState.INCOMPLETE:
                    logger.debug("CI settled for %s after %d polls", qualified_branch, attempts)
                    return status
                if deadline is not None and self.clock() + poll_interval > deadline:
                    raise CiTimeoutError(
                        f"ci for {qualified_branch} still incomplete after {timeout}s"
                    )
                logger.debug("CI incomplete for %s; polling again in %ss", qualified_branch, poll_interval)
                self.sleep(poll_interval)
