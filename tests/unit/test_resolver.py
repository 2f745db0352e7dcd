from __future__ import annotations

import pytest

from conftest import FakeGitHub
from linear_merge.errors import ProtocolError, UsageError
from linear_merge.models import RemoteBinding
from linear_merge.resolver import resolve_reference


def test_empty_token_on_default_branch_is_a_usage_error(fake_github: FakeGitHub) -> None:
    with pytest.raises(UsageError, match="must specify a branch or PR to merge"):
        resolve_reference(None, fake_github.repo, fake_github, current_branch="main")


def test_empty_token_uses_current_branch(fake_github: FakeGitHub) -> None:
    resolution = resolve_reference("", fake_github.repo, fake_github, current_branch="feature")

    assert resolution.reference.branch == "feature"
    assert resolution.reference.fork_owner is None
    assert resolution.binding is None
    assert fake_github.queries == []


def test_pr_number_from_same_repository(fake_github: FakeGitHub) -> None:
    fake_github.prs["42"] = {
        "headRefName": "feature-y",
        "headRepository": {"name": "widgets"},
        "headRepositoryOwner": {"login": "acme"},
    }

    resolution = resolve_reference("42", fake_github.repo, fake_github)

    assert resolution.reference.branch == "feature-y"
    assert resolution.reference.fork_owner is None
    assert resolution.binding is None
    assert not any(query[0] == "fork_url" for query in fake_github.queries)


def test_pr_number_from_fork(fake_github: FakeGitHub) -> None:
    fake_github.prs["42"] = {
        "headRefName": "feature-x",
        "headRepository": {"name": "widgets-fork"},
        "headRepositoryOwner": {"login": "alice"},
    }
    fake_github.fork_urls[("alice", "widgets-fork")] = "git@github.com:alice/widgets-fork.git"

    resolution = resolve_reference("42", fake_github.repo, fake_github)

    assert resolution.reference.qualified_branch == "alice:feature-x"
    assert resolution.binding == RemoteBinding(name="alice", url="git@github.com:alice/widgets-fork.git")


def test_pr_number_missing_field_is_a_protocol_error(fake_github: FakeGitHub) -> None:
    fake_github.prs["42"] = {"headRepository": {"name": "widgets"}, "headRepositoryOwner": {"login": "acme"}}

    with pytest.raises(ProtocolError, match="headRefName"):
        resolve_reference("42", fake_github.repo, fake_github)


def test_qualified_token_looks_up_fork_repository(fake_github: FakeGitHub) -> None:
    fake_github.prs["alice:feature-x"] = {"headRepository": {"name": "widgets"}}
    fake_github.fork_urls[("alice", "widgets")] = "git@github.com:alice/widgets.git"

    resolution = resolve_reference("alice:feature-x", fake_github.repo, fake_github)

    assert resolution.reference.branch == "feature-x"
    assert resolution.reference.qualified_branch == "alice:feature-x"
    assert resolution.binding == RemoteBinding(name="alice", url="git@github.com:alice/widgets.git")
    assert ("pr_view", "alice:feature-x", "headRepository") in fake_github.queries


def test_qualified_token_for_own_repository_is_not_a_fork(fake_github: FakeGitHub) -> None:
    resolution = resolve_reference("acme:feature-x", fake_github.repo, fake_github)

    assert resolution.reference.branch == "feature-x"
    assert resolution.binding is None


@pytest.mark.parametrize("token", ["alice:", ":feature", "a:b:c"])
def test_malformed_qualified_tokens(fake_github: FakeGitHub, token: str) -> None:
    with pytest.raises(UsageError):
        resolve_reference(token, fake_github.repo, fake_github)


def test_bare_branch_name(fake_github: FakeGitHub) -> None:
    resolution = resolve_reference("fix/typo-42", fake_github.repo, fake_github)

    assert resolution.reference.branch == "fix/typo-42"
    assert resolution.binding is None
    assert fake_github.queries == []
