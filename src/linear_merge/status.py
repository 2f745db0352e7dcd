from __future__ import annotations

from collections.abc import Iterable

from .logging import get_logger
from .models import CheckResult, CheckRun, CiState, PrStatus

logger = get_logger(__name__)

SUCCESS_CONCLUSIONS = frozenset({"SUCCESS", "SKIPPED", "NEUTRAL"})
FAILURE_CONCLUSIONS = frozenset({"FAILURE", "CANCELLED", "TIMED_OUT", "ACTION_REQUIRED"})
PENDING_STATUSES = frozenset({"QUEUED", "IN_PROGRESS", "WAITING", "REQUESTED", "PENDING"})


def classify_check(check: CheckRun) -> CiState:
    match (check.status, check.conclusion):
        case ("COMPLETED", conclusion) if conclusion in SUCCESS_CONCLUSIONS:
            return CiState.SUCCESS
        case ("COMPLETED", conclusion) if conclusion in FAILURE_CONCLUSIONS:
            return CiState.FAIL
        case (status, "") if status in PENDING_STATUSES:
            return CiState.INCOMPLETE
        case (status, conclusion):
            logger.warning(
                "Unexpected state for check %s: status=%r conclusion=%r; treating as failed",
                check.label,
                status,
                conclusion,
            )
            return CiState.FAIL


def aggregate_ci_state(checks: Iterable[CheckResult]) -> CiState:
    incomplete = False
    for check in checks:
        if not isinstance(check, CheckRun):
            continue
        state = classify_check(check)
        if state is CiState.FAIL:
            return CiState.FAIL
        if state is CiState.INCOMPLETE:
            incomplete = True
    return CiState.INCOMPLETE if incomplete else CiState.SUCCESS


def ci_state(status: PrStatus) -> CiState:
    return aggregate_ci_state(status.checks)


def unsuccessful_checks(status: PrStatus) -> list[tuple[CheckRun, CiState]]:
    """Every check run that is not successful, with its resolved state."""
    rows: list[tuple[CheckRun, CiState]] = []
    for check in status.check_runs:
        state = classify_check(check)
        if state is not CiState.SUCCESS:
            rows.append((check, state))
    return rows
