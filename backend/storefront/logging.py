"""structlog setup shared by the API entrypoint and the test suite."""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog

from storefront.config import settings

# Provider diagnostics can be whole GraphQL error payloads; keep log lines bounded.
MAX_DIAGNOSTIC_CHARS = 500
_DIAGNOSTIC_KEYS = ("diagnostic", "original_diagnostic", "retry_diagnostic", "error")


def truncate_diagnostics(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Clip long provider diagnostics before rendering."""
    for key in _DIAGNOSTIC_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > MAX_DIAGNOSTIC_CHARS:
            event_dict[key] = value[:MAX_DIAGNOSTIC_CHARS] + "…"
    return event_dict


class _LogFileTee:
    """Mirror stdout into LOG_FILE; file errors only disable the file side."""

    def __init__(self, file_path: str) -> None:
        self._file: IO[str] | None = None
        try:
            self._file = open(file_path, "a")  # noqa: SIM115
        except OSError as exc:
            print(
                f"WARNING: cannot open log file {file_path!r} ({exc}); logging to stdout only.",
                file=sys.stderr,
            )

    def _disable(self, action: str) -> None:
        self._file = None
        print(f"WARNING: log file {action} failed; logging to stdout only.", file=sys.stderr)

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        if self._file is None:
            return
        try:
            self._file.write(data)
            self._file.flush()
        except (OSError, ValueError):
            self._disable("write")

    def flush(self) -> None:
        sys.stdout.flush()
        if self._file is None:
            return
        try:
            self._file.flush()
        except (OSError, ValueError):
            self._disable("flush")


def configure_logging() -> None:
    """Console output in development, JSON lines everywhere else."""
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.environment == "development"
        else structlog.processors.JSONRenderer()
    )
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    if settings.log_file:
        # PrintLoggerFactory only needs write() and flush()
        logger_factory = structlog.PrintLoggerFactory(file=_LogFileTee(settings.log_file))  # type: ignore[arg-type]
    else:
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            truncate_diagnostics,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )
