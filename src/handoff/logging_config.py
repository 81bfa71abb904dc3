"""
Logging setup for handoff.

All loggers live under the "handoff" namespace. Console output goes
through rich's RichHandler; the optional log file is plain text so it
stays greppable from inside a tmux pane.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .settings import LOG_FILENAME


ROOT_LOGGER_NAME = "handoff"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the handoff namespace.

    Accepts either a bare component name ("worker") or a module
    __name__ ("handoff.worker").
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the handoff root logger.

    Existing handlers are removed first, so calling this twice does not
    duplicate output.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(level)
    logger.propagate = False

    if console:
        handler: logging.Handler
        if rich_console:
            from rich.logging import RichHandler

            handler = RichHandler(show_path=False, markup=False, rich_tracebacks=True)
            handler.setFormatter(logging.Formatter("%(message)s"))
        else:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def setup_cli_logging(verbose: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """Quiet console logging for interactive commands."""
    setup_logging(
        level=logging.DEBUG if verbose else logging.WARNING,
        log_file=log_file,
        console=True,
    )
    return get_logger("cli")


def setup_worker_logging(workspace_root: Path, verbose: bool = False) -> logging.Logger:
    """Logging for a worker process running inside a tmux window.

    Workers share the workspace log file so one tail shows the whole
    pipeline.
    """
    setup_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        log_file=workspace_root / LOG_FILENAME,
        console=True,
    )
    return get_logger("worker")


class StructuredLogger:
    """Thin wrapper that appends key=value context to every message."""

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        self._logger = logger
        self._context = dict(context or {})

    def with_context(self, **kwargs: Any) -> "StructuredLogger":
        merged = dict(self._context)
        merged.update(kwargs)
        return StructuredLogger(self._logger, merged)

    def _format(self, message: str, kwargs: Dict[str, Any]) -> str:
        fields = dict(self._context)
        fields.update(kwargs)
        if not fields:
            return message
        extra = " ".join(f"{k}={v}" for k, v in fields.items())
        return f"{message} [{extra}]"

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._format(message, kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._format(message, kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._format(message, kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(self._format(message, kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        self._logger.exception(self._format(message, kwargs))


def get_structured_logger(name: str, **context: Any) -> StructuredLogger:
    return StructuredLogger(get_logger(name), context)
