"""Centralized constants for hookauditor utils package.

This module provides a single source of truth for paths, directories,
and configuration values used across utility modules.
"""

from pathlib import Path

# ============================================================================
# OUTPUT DIRECTORIES
# ============================================================================

# Primary output directory for all hookauditor artifacts
STATE_DIR = Path("./.hookauditor")

# Log files
ERROR_LOG_FILE = STATE_DIR / "error.log"

# Project-level configuration file (JSON)
CONFIG_FILE_NAME = ".hookauditor.json"

# ============================================================================
# FILE DISCOVERY
# ============================================================================

DEFAULT_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs")

DEFAULT_EXCLUDE_DIRS = ("node_modules", ".git", "dist", "build", "coverage")
