"""Error boundary for hookaud commands.

Unexpected exceptions become a short ``click.ClickException``; the full
traceback goes to ``.hookauditor/error.log`` and the log.
"""

import traceback
from collections.abc import Callable
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any

import click

from hookauditor.utils.logging import get_request_id, logger

from .constants import ERROR_LOG_FILE


def write_error_log(command: str, exc: BaseException, path: Path = ERROR_LOG_FILE) -> Path:
    """Append one framed traceback entry to the error log and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    rule = "=" * 80
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"\n{rule}\n")
        f.write(f"[{datetime.now().isoformat()}] {command} failed (request {get_request_id()})\n")
        f.write(f"{rule}\n")
        f.write(f"{type(exc).__name__}: {exc}\n\n")
        f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
        f.write(f"{rule}\n\n")
    return path


def handle_exceptions(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn unexpected exceptions from a command into a logged ClickException.

    ``SystemExit`` (exit codes) and click's own exceptions pass through.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (click.exceptions.Exit, click.ClickException):
            raise
        except Exception as e:
            logger.opt(exception=True).error(f"Command '{func.__name__}' failed: {e}")
            log_path = write_error_log(func.__name__, e)
            raise click.ClickException(
                f"{type(e).__name__}: {e}\n\nFull traceback logged to: {log_path}"
            ) from e

    return wrapper
