from __future__ import annotations

from .errors import UsageError
from .github import GitHubClient, require_field
from .logging import get_logger
from .models import PullRequestReference, RemoteBinding, RepoInfo, Resolution

logger = get_logger(__name__)

PR_HEAD_FIELDS = "headRefName,headRepository,headRepositoryOwner"


def resolve_reference(
    token: str | None,
    repo: RepoInfo,
    github: GitHubClient,
    current_branch: str | None = None,
) -> Resolution:
    """Turn a PR number, branch name, or ``owner:branch`` into a reference.

    ``current_branch`` is only consulted when ``token`` is empty.
    """
    if not token:
        if not current_branch or current_branch == repo.default_branch:
            raise UsageError(
                f"on {current_branch or 'a detached HEAD'}; must specify a branch or PR to merge"
            )
        return Resolution(PullRequestReference(branch=current_branch))

    if token.isascii() and token.isdigit():
        return _resolve_pr_number(token, repo, github)

    if ":" in token:
        return _resolve_qualified(token, repo, github)

    return Resolution(PullRequestReference(branch=token))


def _resolve_pr_number(token: str, repo: RepoInfo, github: GitHubClient) -> Resolution:
    source = f"pr #{token}"
    data = github.pr_view(token, PR_HEAD_FIELDS)
    branch = require_field(data, "/headRefName", source)
    head_owner = require_field(data, "/headRepositoryOwner/login", source)
    if head_owner == repo.owner:
        return Resolution(PullRequestReference(branch=branch))

    head_repo = require_field(data, "/headRepository/name", source)
    logger.info("PR #%s comes from fork %s/%s", token, head_owner, head_repo)
    return _fork_resolution(branch, head_owner, head_repo, github)


def _resolve_qualified(token: str, repo: RepoInfo, github: GitHubClient) -> Resolution:
    owner, _, branch = token.partition(":")
    if not owner or not branch or ":" in branch:
        raise UsageError(f"{token!r} is not of the form owner:branch")
    if owner == repo.owner:
        return Resolution(PullRequestReference(branch=branch))

    data = github.pr_view(token, "headRepository")
    head_repo = require_field(data, "/headRepository/name", token)
    return _fork_resolution(branch, owner, head_repo, github)


def _fork_resolution(branch: str, owner: str, repo_name: str, github: GitHubClient) -> Resolution:
    url = github.fork_url(owner, repo_name)
    return Resolution(
        PullRequestReference(branch=branch, fork_owner=owner),
        RemoteBinding(name=owner, url=url),
    )
