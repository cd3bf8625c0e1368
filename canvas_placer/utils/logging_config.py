"""Logging setup for the placer CLI and its agent threads.

Every record is stamped with the contextual fields of the thread that
emitted it (``app``, ``agent``).  Fields live in a ``ContextVar``, so agent
threads never see each other's tags.

Usage::

    setup_logging("INFO", "logs/placer.log", context={"app": "placer"})
    with agent_context(agent=2):
        logger.info("Placed pixel at (10, 11)")

    # 2026-10-19T13:45:12.345Z INFO     [app=placer agent=2] Placed pixel at (10, 11)
    # {"ts": "...", "level": "INFO", "logger": "...", "app": "placer", "agent": 2, "msg": "..."}

Calling ``setup_logging`` again replaces the handlers installed by the
previous call and leaves any other root handlers alone.
"""

import contextvars
import json as jsonlib
import logging
import logging.handlers
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

_fields: contextvars.ContextVar = contextvars.ContextVar("placer_log_fields", default={})
_installed: List[logging.Handler] = []

_LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


class ContextFormatter(logging.Formatter):
    """Human-readable or JSON-lines formatter with the thread's fields."""

    def __init__(self, json: bool = False, color: bool = False) -> None:
        super().__init__()
        self.json = json
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        fields = _fields.get()

        if self.json:
            payload = {
                "ts": ts.isoformat(timespec="milliseconds"),
                "level": record.levelname,
                "logger": record.name,
                "thread": record.threadName,
                **fields,
                "msg": record.getMessage(),
            }
            if record.exc_info:
                payload["exc"] = self.formatException(record.exc_info)
            return jsonlib.dumps(payload, default=str)

        level = f"{record.levelname:<8}"
        if self.color:
            level = f"{_LEVEL_COLORS.get(record.levelname, '')}{level}{_RESET}"
        stamp = ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"

        tags = " ".join(f"{k}={v}" for k, v in fields.items())
        prefix = f"{stamp} {level} [{tags}]" if tags else f"{stamp} {level}"
        line = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    max_bytes: int = 0,
    backups: int = 3,
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> List[logging.Handler]:
    """Install console and file handlers on the root logger.

    Parameters
    ----------
    log_level : str
        Root level name ("DEBUG" ... "CRITICAL").
    log_file : str, optional
        Also write to this file (parent directories are created).
    json : bool
        JSON lines instead of the human format.
    color : bool
        Color the level name on the console when stderr is a TTY.
    to_stderr : bool
        Attach the console handler.
    max_bytes : int
        Rotate the log file at this size; 0 disables rotation.
    backups : int
        Rotated files to keep.
    capture_warnings : bool
        Route ``warnings.warn`` through logging.
    quiet_libs : list[str], optional
        Library loggers raised to WARNING (e.g. ["PIL", "asyncio"]).
    context : dict, optional
        Fields pushed onto the calling thread's context.

    Returns
    -------
    list[logging.Handler]
        The handlers now installed.
    """
    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    root.setLevel(log_level.upper())

    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(
            ContextFormatter(json=json, color=color and sys.stderr.isatty())
        )
        _installed.append(console)
    if log_file:
        _installed.append(_file_handler(Path(log_file), json, max_bytes, backups))

    for handler in _installed:
        root.addHandler(handler)

    for lib in quiet_libs or []:
        logging.getLogger(lib).setLevel(logging.WARNING)
    logging.captureWarnings(capture_warnings)
    if context:
        push_context(**context)

    return list(_installed)


def _file_handler(path: Path, json: bool, max_bytes: int, backups: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    if max_bytes > 0:
        handler: logging.Handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8",
        )
    else:
        handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(ContextFormatter(json=json))
    return handler


def push_context(**fields: Any) -> None:
    """Add fields to every later record from this thread."""
    _fields.set({**_fields.get(), **fields})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Drop *keys* from this thread's fields, or all of them."""
    if keys is None:
        _fields.set({})
        return
    _fields.set({k: v for k, v in _fields.get().items() if k not in keys})


def get_context() -> Dict[str, Any]:
    return dict(_fields.get())


@contextmanager
def agent_context(**fields: Any) -> Iterator[None]:
    """Push *fields* for the duration of a ``with`` block.

    Worker threads start with an empty context, so the orchestrator wraps
    each agent body in this to tag its log lines.
    """
    token = _fields.set({**_fields.get(), **fields})
    try:
        yield
    finally:
        _fields.reset(token)
