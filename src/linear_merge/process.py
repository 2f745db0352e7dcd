from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

from .errors import ProcessError, ToolMissingError
from .logging import get_logger

logger = get_logger(__name__)


def ensure_tool(tool_name: str) -> str:
    path = shutil.which(tool_name)
    if path is None:
        raise ToolMissingError(f"tool `{tool_name}` is required")
    return path


class CommandRunner:
    def __init__(self, cwd: Path | None = None):
        self.cwd = cwd

    def run(self, args: list[str], quiet: bool = False, env: dict[str, str] | None = None) -> str:
        """Run ``args`` and return its stripped stdout.

        Unless ``quiet``, the command line is logged at INFO and its output
        echoed at DEBUG; quiet commands are only logged at DEBUG.
        ``env`` entries are layered over the inherited environment.
        """
        if quiet:
            logger.debug("$ %s", " ".join(args))
        else:
            logger.info("$ %s", " ".join(args))

        try:
            proc = subprocess.run(
                args,
                cwd=self.cwd,
                check=False,
                text=True,
                capture_output=True,
                env={**os.environ, **env} if env else None,
            )
        except FileNotFoundError as exc:
            raise ToolMissingError(f"tool `{args[0]}` is required") from exc

        if not quiet:
            for stream in (proc.stdout, proc.stderr):
                if stream.strip():
                    logger.debug(stream.rstrip())

        if proc.returncode != 0:
            raise ProcessError(args, proc.returncode, proc.stdout, proc.stderr)
        return proc.stdout.strip()
