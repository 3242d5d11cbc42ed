"""Loguru setup for hookauditor.

Human-readable lines go to stderr so that ``hookaud check --json`` keeps
stdout clean for the report. Machine consumers (editor plugins, CI log
shippers) can switch to Pino-compatible NDJSON instead.

Usage:
    from hookauditor.utils.logging import logger
    logger.debug("built CFG")  # Only shows if HOOKAUDITOR_LOG_LEVEL=DEBUG

Environment Variables:
    HOOKAUDITOR_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: WARNING)
    HOOKAUDITOR_LOG_JSON: 0|1 (default: 0, human-readable)
    HOOKAUDITOR_LOG_FILE: append NDJSON records to this file (optional)
    HOOKAUDITOR_REQUEST_ID: correlation ID, echoed in logs and JSON reports
"""

import json
import os
import sys
import uuid
from pathlib import Path

from loguru import logger

PINO_LEVELS = {
    "TRACE": 10,
    "DEBUG": 20,
    "INFO": 30,
    "SUCCESS": 30,
    "WARNING": 40,
    "ERROR": 50,
    "CRITICAL": 60,
}

HUMAN_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

_request_id = os.environ.get("HOOKAUDITOR_REQUEST_ID") or str(uuid.uuid4())


def pino_record(record) -> dict:
    """Flatten a loguru record into a Pino log object.

    Values bound with ``logger.bind(...)`` (file, unit) become top-level keys.
    """
    entry = {
        "level": PINO_LEVELS.get(record["level"].name, 30),
        "time": int(record["time"].timestamp() * 1000),
        "msg": record["message"],
        "pid": record["process"].id,
        "request_id": record["extra"].get("request_id", _request_id),
    }
    entry.update((k, v) for k, v in record["extra"].items() if k != "request_id")

    exc = record["exception"]
    if exc:
        entry["err"] = {
            "type": exc.type.__name__ if exc.type else "Error",
            "message": str(exc.value) if exc.value else "",
        }
    return entry


def pino_compatible_sink(message):
    """NDJSON on stdout. Never log from inside a sink."""
    sys.stdout.write(json.dumps(pino_record(message.record), default=str) + "\n")
    sys.stdout.flush()


def _stderr_sink(message):
    sys.stderr.write(message)


def _ndjson_file_sink(path: str):
    def sink(message):
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(pino_record(message.record), default=str) + "\n")

    return sink


def configure_logging(level: str = "WARNING", json_mode: bool = False, log_file: str | None = None) -> list[int]:
    """Replace all handlers; returns the ids of the handlers added."""
    logger.remove()
    for name, color in (("DEBUG", "<blue>"), ("INFO", "<white>"), ("WARNING", "<yellow>"), ("ERROR", "<red>")):
        logger.level(name, color=color)

    handlers = []
    if json_mode:
        handlers.append(logger.add(pino_compatible_sink, level=level, colorize=False))
    else:
        # Resolved per write so redirected stderr (tests, CliRunner) is honored
        handlers.append(
            logger.add(_stderr_sink, level=level, format=HUMAN_FORMAT, colorize=sys.stderr.isatty())
        )
    if log_file:
        handlers.append(logger.add(_ndjson_file_sink(log_file), level="DEBUG"))
    return handlers


def configure_file_logging(log_dir: Path, level: str = "DEBUG") -> int:
    """Add a rotating plain-text log under ``log_dir`` (``check --log-dir``).

    Returns the loguru handler id so callers can remove it again.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    return logger.add(
        log_dir / "hookauditor.log",
        rotation="10 MB",
        retention="7 days",
        level=level,
        format=FILE_FORMAT,
    )


def get_request_id() -> str:
    return _request_id


configure_logging(
    level=os.environ.get("HOOKAUDITOR_LOG_LEVEL", "WARNING").upper(),
    json_mode=os.environ.get("HOOKAUDITOR_LOG_JSON", "0") == "1",
    log_file=os.environ.get("HOOKAUDITOR_LOG_FILE"),
)

__all__ = [
    "logger",
    "configure_logging",
    "configure_file_logging",
    "get_request_id",
    "pino_compatible_sink",
    "pino_record",
]
