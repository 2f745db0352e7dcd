from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from rich.console import Console

_console = Console(stderr=True)


@contextmanager
def spinner(message: str, console: Console | None = None) -> Iterator[None]:
    console = console or _console
    if not console.is_terminal:
        yield
        return
    with console.status(message):
        yield
