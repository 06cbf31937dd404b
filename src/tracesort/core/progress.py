"""User-facing progress feedback for CLI operations.

Design principles:
- Single line updates, no spam
- Graceful degradation in non-TTY (CI, pipes)
- Suppress structlog console output while a live bar is drawn

Usage::

    from tracesort.core.progress import percent_bar, status

    status("Sorting trace.json...")

    with percent_bar("Sorting") as update:
        job = SortingJob(..., on_progress=update)
        job.run()

    status("Sorted 3 runs", style="success")  # ✓ Sorted 3 runs
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

# Console for output
_console = Console(stderr=True)

# Style prefixes
_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}

# Process-wide: the sort job logs from its own thread while the bar is drawn
_suppress_console_logs = threading.Event()


def is_console_suppressed() -> bool:
    """Check if console logging is currently suppressed."""
    return _suppress_console_logs.is_set()


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    """Context manager to suppress structlog console output.

    Logs are still written to file handlers.
    """
    _suppress_console_logs.set()
    try:
        yield
    finally:
        _suppress_console_logs.clear()


def _get_logger() -> BoundLogger:
    """Get logger lazily to respect runtime config."""
    from tracesort.core.logging import get_logger

    return get_logger("progress")


def _is_tty() -> bool:
    """Check if stderr is a TTY."""
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def get_console() -> Console:
    """Get the shared Rich console instance."""
    return _console


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print a styled status message to stderr."""
    prefix = _STYLES.get(style, "")
    padding = " " * indent
    _console.print(f"{padding}{prefix}{message}", highlight=False)

    _get_logger().debug("status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return grammatically correct singular/plural form.

    Returns:
        Formatted string like "1 run" or "3 runs"
    """
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"


@contextmanager
def percent_bar(desc: str, *, force: bool = False) -> Iterator[Callable[[float], None]]:
    """Draw a 0-100 progress bar and yield a callback that moves it.

    The callback is safe to call from worker threads. Outside a TTY (unless
    force=True) no bar is drawn and the callback only records debug events
    at whole-ten boundaries.
    """
    if force or _is_tty():
        with (
            suppress_console_logs(),
            Progress(
                TextColumn("    {task.description}:"),
                BarColumn(bar_width=30, style="cyan", complete_style="cyan"),
                TaskProgressColumn(),
                TimeElapsedColumn(),
                console=_console,
                transient=True,
            ) as pbar,
        ):
            task_id = pbar.add_task(desc, total=100.0)

            def _update(percent: float) -> None:
                pbar.update(task_id, completed=percent)

            yield _update
    else:
        log = _get_logger()
        last_decile = -1

        def _update(percent: float) -> None:
            nonlocal last_decile
            decile = int(percent // 10)
            if decile > last_decile:
                last_decile = decile
                log.debug("progress", desc=desc, percent=round(percent, 1))

        yield _update
