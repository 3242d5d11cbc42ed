"""hookauditor utilities package."""

from .constants import (
    CONFIG_FILE_NAME,
    DEFAULT_EXCLUDE_DIRS,
    DEFAULT_EXTENSIONS,
    ERROR_LOG_FILE,
    STATE_DIR,
)
from .error_handler import handle_exceptions
from .exit_codes import ExitCodes
from .logging import logger

__all__ = [
    "STATE_DIR",
    "ERROR_LOG_FILE",
    "CONFIG_FILE_NAME",
    "DEFAULT_EXTENSIONS",
    "DEFAULT_EXCLUDE_DIRS",
    "handle_exceptions",
    "ExitCodes",
    "logger",
]
