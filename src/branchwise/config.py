"""Configuration loading.

Settings come from three places, first hit wins per key:

1. ``.branchwiserc`` at the work-tree root
2. ``$XDG_CONFIG_HOME/branchwise/config`` (``~/.config/branchwise/config``)
3. ``BRANCHWISE_<KEY>`` environment variables

Files hold ``key = value`` lines; ``#`` starts a comment line.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from pydantic import ValidationError

from branchwise.exceptions import ConfigError
from branchwise.models.config import BranchwiseConfig

logger = logging.getLogger(__name__)

REPO_CONFIG_NAME = ".branchwiserc"
ENV_PREFIX = "BRANCHWISE_"
KNOWN_KEYS = frozenset(BranchwiseConfig.model_fields)


def global_config_path(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    base = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "branchwise" / "config"


def _normalize_key(key: str) -> str:
    return key.strip().lower().replace("-", "_")


def parse_config_text(text: str, source: str = "<string>") -> dict[str, str]:
    """Parse ``key = value`` lines into a dict of raw strings.

    Raises:
        ConfigError: For a non-blank, non-comment line without ``=``.
    """
    values: dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep or not key.strip():
            raise ConfigError(raw.strip(), f"{source}:{lineno}", "expected 'key = value'")
        key = _normalize_key(key)
        if key not in KNOWN_KEYS:
            logger.warning("Ignoring unknown config key '%s' in %s", key, source)
            continue
        values[key] = value.strip().strip('"').strip("'")
    return values


def read_config_file(path: Path) -> dict[str, str]:
    if not path.is_file():
        return {}
    logger.debug("Reading config from %s", path)
    return parse_config_text(path.read_text(encoding="utf-8"), source=str(path))


def env_values(env: Mapping[str, str] | None = None) -> dict[str, str]:
    env = os.environ if env is None else env
    values: dict[str, str] = {}
    for key in KNOWN_KEYS:
        name = ENV_PREFIX + key.upper()
        if name in env:
            values[key] = env[name]
    return values


def load_config(
    repo_root: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    global_path: Path | None = None,
) -> BranchwiseConfig:
    """Build the effective configuration for a repository.

    Raises:
        ConfigError: If a file is malformed or a value fails validation;
            the error names the key and the source it came from.
    """
    layers: list[tuple[str, dict[str, str]]] = []
    if repo_root is not None:
        path = Path(repo_root) / REPO_CONFIG_NAME
        layers.append((str(path), read_config_file(path)))
    path = global_path if global_path is not None else global_config_path(env)
    layers.append((str(path), read_config_file(path)))
    layers.append(("environment", env_values(env)))

    merged: dict[str, str] = {}
    sources: dict[str, str] = {}
    for source, values in layers:
        for key, value in values.items():
            if key not in merged:
                merged[key] = value
                sources[key] = source

    try:
        return BranchwiseConfig(**merged)
    except ValidationError as e:
        first = e.errors()[0]
        key = str(first["loc"][0]) if first["loc"] else "?"
        raise ConfigError(key, sources.get(key, "defaults"), first["msg"]) from None
