"""Logging for the room server.

Every module logs through ``structlog.get_logger()``; the events travel
through the stdlib root logger so uvicorn, redis and pytest's caplog see
the same stream. Two environment variables pick the output:

- LOG_FORMAT: ``json`` writes one JSON object per line, ``console`` or
  empty gives readable key=value lines.
- LOG_LEVEL: a stdlib level name. INFO when unset.

Code that acts on a room wraps itself in ``bind_room`` so each line it
emits carries the room id.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from contextlib import AbstractContextManager
    from typing import Any

    from structlog.typing import Processor

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_LOG_FORMATS = ("json", "console", "")
_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Client libraries that log per command or per request at INFO.
_QUIET_LOGGERS = ("redis", "uvicorn.access")


def _enum_values(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Log RoomPhase, GameErrorCode and friends as their plain values."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def event_processors() -> list[Processor]:
    """Processors applied to every event before it is handed to stdlib logging.

    Tracebacks are rendered later by each handler's formatter, not here.
    """
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _enum_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]


def _is_test() -> bool:
    return "pytest" in sys.modules


def _wants_json() -> bool:
    log_format = os.environ.get("LOG_FORMAT", "").lower()
    if log_format not in _LOG_FORMATS:
        msg = f"Invalid LOG_FORMAT={log_format!r}. Use 'json' or 'console', or leave it unset."
        raise ValueError(msg)
    return log_format == "json"


def _level_from_env() -> int:
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    try:
        return _LOG_LEVELS[name]
    except KeyError:
        msg = f"Invalid LOG_LEVEL={name!r}. Expected one of {', '.join(_LOG_LEVELS)}."
        raise ValueError(msg) from None


def _formatter(*, json_mode: bool, colors: bool = False) -> logging.Formatter:
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def _file_handler(log_dir: Path | str, *, json_mode: bool) -> tuple[logging.Handler, Path]:
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    handler = logging.FileHandler(path)
    handler.setFormatter(_formatter(json_mode=json_mode))
    return handler, path


def bind_room(room_id: str) -> AbstractContextManager[Any]:
    """Tag every event logged inside the block with room_id."""
    return structlog.contextvars.bound_contextvars(room_id=room_id)


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
) -> Path | None:
    """Install the stdout handler, plus a log file under log_dir when one is given.

    Calling it again replaces the previous handlers. Test runs never open a
    file. Returns the path of the file it opened, if any.
    """
    json_mode = _wants_json()
    structlog.configure(
        processors=event_processors(),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(_level_from_env() if level is None else level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_formatter(json_mode=json_mode, colors=sys.stdout.isatty()))
    root.addHandler(console)

    if log_dir is None or _is_test():
        return None
    handler, path = _file_handler(log_dir, json_mode=json_mode)
    root.addHandler(handler)
    return path
