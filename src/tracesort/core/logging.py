"""structlog setup for tracesort.

Every event passes through the stdlib root logger, so each configured output
is a plain ``logging.Handler`` with its own level and renderer. Events logged
while a job runs carry that job's id, including those from worker threads
that bind it explicitly. Console handlers go quiet while a progress bar is
on screen; file handlers never do.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from tracesort.config.models import LoggingConfig, LogOutputConfig

_job_id: ContextVar[str | None] = ContextVar("job_id", default=None)

# First file output of the active configuration
_log_file_path: Path | None = None

_CONSOLE_DESTINATIONS = ("stderr", "stdout")


def get_job_id() -> str | None:
    return _job_id.get()


def set_job_id(job_id: str | None = None) -> str:
    """Bind a job id to the current context, generating one if needed."""
    jid = job_id or uuid4().hex[:12]
    _job_id.set(jid)
    return jid


def clear_job_id() -> None:
    _job_id.set(None)


def get_log_file_path() -> Path | None:
    """Where the detailed log of this process goes, when it goes to a file."""
    return _log_file_path


def _add_job_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if jid := get_job_id():
        event_dict.setdefault("job_id", jid)
    return event_dict


def _level(name: str | None, fallback: int) -> int:
    if not name:
        return fallback
    # getLevelName maps names back to numbers, WARN included
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else fallback


class ConsoleSuppressingFilter(logging.Filter):
    """Drops console records while a progress bar is drawn."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        from tracesort.core.progress import is_console_suppressed

        return not is_console_suppressed()


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Install the handlers described by config.

    Without a config, a single stderr output is used at ``level``, rendered
    as JSON when ``json_format`` is set. Calling this again replaces the
    previous handlers.
    """
    global _log_file_path
    from tracesort.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level.upper(),  # type: ignore[arg-type]
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = _level(config.level, logging.INFO)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _add_job_id,  # type: ignore[list-item]
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration must reach loggers created at import time
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for old in list(root.handlers):
        old.close()
    root.handlers.clear()
    root.setLevel(root_level)

    _log_file_path = None
    for output in config.outputs:
        handler = _handler(output)
        handler.setLevel(_level(output.level or config.level, root_level))
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=_renderer(output), foreign_pre_chain=pre_chain
            )
        )
        root.addHandler(handler)
        if _log_file_path is None and output.destination not in _CONSOLE_DESTINATIONS:
            _log_file_path = Path(output.destination)


def _handler(output: LogOutputConfig) -> logging.Handler:
    if output.destination in _CONSOLE_DESTINATIONS:
        stream = sys.stderr if output.destination == "stderr" else sys.stdout
        handler: logging.Handler = logging.StreamHandler(stream)
        handler.addFilter(ConsoleSuppressingFilter())
        return handler
    path = Path(output.destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a")


def _renderer(output: LogOutputConfig) -> structlog.types.Processor:
    if output.format == "json":
        return structlog.processors.JSONRenderer()
    colors = output.destination in _CONSOLE_DESTINATIONS and sys.stderr.isatty()
    return structlog.dev.ConsoleRenderer(colors=colors, pad_event_to=0, pad_level=False)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
