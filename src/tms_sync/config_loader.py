"""
YAML config files for tms-sync.

Up to three files are read, most specific first:

    $TMS_SYNC_CONFIG                 explicit path
    ./.tms_sync/config.yml           project file (next to the state store)
    ~/.config/tms_sync/config.yml    per-user defaults

Sections of a more specific file replace whole sections of a less specific
one. String values may reference the environment as ``${VAR}`` or
``${VAR:-default}``, so secrets can stay out of the files.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")

PROJECT_CONFIG = Path(".tms_sync") / "config.yml"
USER_CONFIG = Path(".config") / "tms_sync" / "config.yml"


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""``.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m["name"]) or (m["default"] or ""), value
    )


def _interpolate_recursive(obj: Any) -> Any:
    match obj:
        case str():
            return interpolate_env_vars(obj)
        case dict():
            return {key: _interpolate_recursive(val) for key, val in obj.items()}
        case list():
            return [_interpolate_recursive(item) for item in obj]
    return obj


def discover_config_files() -> list[Path]:
    """Return the config files that exist, most specific first."""
    candidates = [Path.cwd() / PROJECT_CONFIG, Path.home() / USER_CONFIG]
    explicit = os.environ.get("TMS_SYNC_CONFIG")
    if explicit:
        candidates.insert(0, Path(explicit).expanduser().resolve())
    return [path for path in candidates if path.is_file()]


def load_config_file(path: Path) -> Any:
    with open(path, encoding="utf-8") as fh:
        return yaml.safe_load(fh)


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered config file into one raw dict.

    Returns ``{}`` when no file exists. A YAML syntax error propagates; a
    file whose root is not a mapping is skipped with a warning.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        data = load_config_file(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )
            continue
        logger.debug("Loaded config %s", path)
        merged.update(data)
    return _interpolate_recursive(merged)
