from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from .errors import ProcessError, ProtocolError, TransportError
from .models import PrStatus, RepoInfo
from .process import CommandRunner

STATUS_FIELDS = "baseRefName,reviewDecision,statusCheckRollup"


def require_field(data: Any, pointer: str, source: str) -> str:
    """Resolve a ``/a/b`` pointer in a decoded response to a non-empty string."""
    cursor = data
    for part in pointer.strip("/").split("/"):
        if not isinstance(cursor, dict) or part not in cursor:
            raise ProtocolError(f"github did not return {pointer.strip('/')} for {source}")
        cursor = cursor[part]
    if not isinstance(cursor, str) or not cursor:
        raise ProtocolError(f"github returned an invalid {pointer.strip('/')} for {source}: {cursor!r}")
    return cursor


class GitHubClient:
    """Read-only queries against GitHub, issued through the ``gh`` CLI."""

    def __init__(self, runner: CommandRunner, gh_binary: str = "gh"):
        self.runner = runner
        self.gh_binary = gh_binary

    def _query(self, args: list[str], operation: str) -> Any:
        try:
            output = self.runner.run([self.gh_binary, *args], quiet=True)
        except ProcessError as exc:
            raise TransportError(f"{operation} failed") from exc

        try:
            return json.loads(output)
        except ValueError as exc:
            raise ProtocolError(f"{operation}: github returned malformed JSON") from exc

    def repo_info(self) -> RepoInfo:
        data = self._query(
            ["repo", "view", "--json", "owner,name,defaultBranchRef"],
            "getting repository metadata",
        )
        return RepoInfo(
            owner=require_field(data, "/owner/login", "the current repository"),
            name=require_field(data, "/name", "the current repository"),
            default_branch=require_field(data, "/defaultBranchRef/name", "the current repository"),
        )

    def pr_view(self, token: str, fields: str) -> dict[str, Any]:
        data = self._query(["pr", "view", token, "--json", fields], f"getting {fields} for pr {token}")
        if not isinstance(data, dict):
            raise ProtocolError(f"github returned a non-object for pr {token}")
        return data

    def pr_status(self, token: str) -> PrStatus:
        data = self.pr_view(token, STATUS_FIELDS)
        try:
            return PrStatus.model_validate(data)
        except ValidationError as exc:
            raise ProtocolError(f"parsing github status for {token}") from exc

    def fork_url(self, owner: str, repo_name: str) -> str:
        slug = f"{owner}/{repo_name}"
        data = self._query(["repo", "view", slug, "--json", "sshUrl"], f"getting fetch url for {slug}")
        return require_field(data, "/sshUrl", slug)
