from __future__ import annotations


class LinearMergeError(Exception):
    """Base class for every failure that ends a merge run."""

    exit_code = 1


class UsageError(LinearMergeError):
    exit_code = 2


class ToolMissingError(LinearMergeError):
    exit_code = 3


class TransportError(LinearMergeError):
    exit_code = 4


class ProtocolError(LinearMergeError):
    exit_code = 5


class GitError(LinearMergeError):
    exit_code = 6


class NotApprovedError(LinearMergeError):
    exit_code = 10


class CiFailedError(LinearMergeError):
    exit_code = 11

    def __init__(self, message: str, failing: list[str] | None = None):
        super().__init__(message)
        self.failing = failing or []


class CiTimeoutError(LinearMergeError):
    exit_code = 12


class DivergedBranchError(LinearMergeError):
    exit_code = 13


class RebaseConflictError(LinearMergeError):
    exit_code = 14


class MergeNotFastForwardError(LinearMergeError):
    exit_code = 15


class PushFailedError(LinearMergeError):
    exit_code = 16


class ProcessError(Exception):
    """An external command exited non-zero.

    Never surfaced to the user directly; callers wrap it in a
    ``LinearMergeError`` naming the operation that failed.
    """

    def __init__(self, command: list[str], returncode: int, stdout: str = "", stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        details = (stderr or stdout).strip()
        message = f"`{' '.join(command)}` exited with status {returncode}"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


def describe(exc: BaseException) -> str:
    """Render an error with its chain of causes, outermost first."""
    parts = [str(exc)]
    cause = exc.__cause__
    while cause is not None:
        text = str(cause)
        if text and text not in parts:
            parts.append(text)
        cause = cause.__cause__
    return "\ncaused by: ".join(parts)
