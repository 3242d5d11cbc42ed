"""Runtime configuration for hookauditor - centralized configuration management."""

import copy
import json
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from hookauditor.utils.constants import CONFIG_FILE_NAME, DEFAULT_EXCLUDE_DIRS, DEFAULT_EXTENSIONS
from hookauditor.utils.logging import logger

DEFAULTS = {
    "hooks": {
        "helper_prefix": "use",
        "additional_hooks": "",
        "additional_stable_identifiers": [],
        "flag_stable_dependencies": False,
        "strict_member_dependencies": False,
    },
    "analysis": {
        "workers": 4,
        "extensions": list(DEFAULT_EXTENSIONS),
        "exclude": list(DEFAULT_EXCLUDE_DIRS),
    },
    "report": {
        "max_rows": 200,
    },
}

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _merge_section(cfg: dict[str, Any], user: dict[str, Any], origin: str) -> None:
    """Merge known keys of ``user`` into ``cfg``, skipping type mismatches."""
    for section in DEFAULTS:
        if section not in user or not isinstance(user[section], dict):
            continue
        for key, value in user[section].items():
            if key not in cfg[section]:
                logger.warning(f"Unknown config key {section}.{key} in {origin}")
                continue
            default_value = DEFAULTS[section][key]
            # bool is an int subclass; keep them apart
            if isinstance(default_value, bool) != isinstance(value, bool) or not isinstance(
                value, type(default_value)
            ):
                logger.warning(
                    f"Ignoring {section}.{key} from {origin}: expected "
                    f"{type(default_value).__name__}, got {type(value).__name__}"
                )
                continue
            cfg[section][key] = value


def _load_pyproject(root: Path) -> dict[str, Any]:
    path = root / "pyproject.toml"
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return {}
    section = data.get("tool", {}).get("hookauditor", {})
    return section if isinstance(section, dict) else {}


def _load_json(root: Path) -> dict[str, Any]:
    path = root / CONFIG_FILE_NAME
    try:
        if path.exists():
            with open(path, encoding="utf-8") as f:
                user = json.load(f)
            if isinstance(user, dict):
                return user
            logger.warning(f"Ignoring {path}: top level must be an object")
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Could not load config file from {path}: {e}")
        logger.info("Continuing with default configuration")
    return {}


def load_runtime_config(root: str = ".") -> dict[str, Any]:
    """
    Load runtime configuration from pyproject.toml, .hookauditor.json and the environment.

    Config priority (highest to lowest):
    1. Environment variables (HOOKAUDITOR_<SECTION>_<KEY>)
    2. .hookauditor.json file
    3. [tool.hookauditor] in pyproject.toml
    4. Built-in defaults

    Args:
        root: Root directory to look for config files

    Returns:
        Configuration dictionary with merged values
    """
    cfg = copy.deepcopy(DEFAULTS)
    root_path = Path(root)

    _merge_section(cfg, _load_pyproject(root_path), "pyproject.toml")
    _merge_section(cfg, _load_json(root_path), CONFIG_FILE_NAME)

    for section in cfg:
        for key in cfg[section]:
            env_var = f"HOOKAUDITOR_{section.upper()}_{key.upper()}"
            if env_var not in os.environ:
                continue
            value = os.environ[env_var]
            default_value = cfg[section][key]
            try:
                if isinstance(default_value, bool):
                    lowered = value.strip().lower()
                    if lowered in _TRUE_VALUES:
                        cfg[section][key] = True
                    elif lowered in _FALSE_VALUES:
                        cfg[section][key] = False
                    else:
                        raise ValueError("expected a boolean")
                elif isinstance(default_value, int):
                    cfg[section][key] = int(value)
                elif isinstance(default_value, list):
                    cfg[section][key] = [v.strip() for v in value.split(",") if v.strip()]
                else:
                    cfg[section][key] = value
            except (ValueError, AttributeError) as e:
                logger.warning(f"Invalid value for environment variable {env_var}: '{value}' - {e}")
                logger.info(f"Using value: {cfg[section][key]}")

    return cfg


@dataclass(frozen=True)
class HooksConfig:
    """Typed options consumed by the hook analyses."""

    helper_prefix: str = "use"
    additional_hooks: str | None = None
    additional_stable_identifiers: tuple[str, ...] = ()
    flag_stable_dependencies: bool = False
    strict_member_dependencies: bool = False

    @classmethod
    def from_runtime(cls, cfg: dict[str, Any]) -> "HooksConfig":
        hooks = cfg.get("hooks", {})
        return cls(
            helper_prefix=hooks.get("helper_prefix") or "use",
            additional_hooks=hooks.get("additional_hooks") or None,
            additional_stable_identifiers=tuple(hooks.get("additional_stable_identifiers") or ()),
            flag_stable_dependencies=bool(hooks.get("flag_stable_dependencies")),
            strict_member_dependencies=bool(hooks.get("strict_member_dependencies")),
        )
