from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from .errors import GitError
from .git import GitClient
from .logging import get_logger
from .models import RemoteBinding

logger = get_logger(__name__)


class RemoteBindingManager:
    """Owns the lifecycle of the ephemeral remote used to fetch from a fork."""

    def __init__(self, git: GitClient, default_remote: str):
        self.git = git
        self.default_remote = default_remote

    @contextmanager
    def bind(self, binding: RemoteBinding | None) -> Iterator[str]:
        """Yield the name of the remote the head branch lives on.

        Without a binding this is the configured default remote and nothing
        is added. With one, the remote exists exactly for the body of the
        ``with`` block.
        """
        if binding is None:
            yield self.default_remote
            return

        if binding.name in self.git.remotes():
            raise GitError(f"remote {binding.name} already exists; remove it and try again")
        self.git.add_remote(binding.name, binding.url)
        logger.info("Added remote %s -> %s", binding.name, binding.url)
        try:
            yield binding.name
        finally:
            self.release(binding)

    def release(self, binding: RemoteBinding) -> None:
        try:
            self.git.remove_remote(binding.name)
        except GitError as exc:
            logger.warning("Failed to remove remote %s: %s", binding.name, exc.__cause__ or exc)
        else:
            logger.info("Removed remote %s", binding.name)
