"""Configuration file loading.

Handles:
- YAML file parsing
- Layered merging (user, project, explicit file, environment)
- Conversion from dict to typed Config dataclass

There is no process-wide cache: every call re-reads the files, so a
long-lived poller picks up edits on its next load.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from agentcolony.config.paths import get_config_paths
from agentcolony.config.schema import (
    AgentConfig,
    ClaimConfig,
    Config,
    LoggingConfig,
    StoreConfig,
)
from agentcolony.errors import ValidationError

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("agentcolony.config")

_KNOWN_SECTIONS = frozenset({"store", "claims", "agent", "logging"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict on error.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def merge_layers(*layers: dict[str, Any]) -> dict[str, Any]:
    """Fold config dicts left to right; later layers win.

    Nested mappings merge key by key. A None value leaves the lower
    layer's value in place, and lists are taken whole from the higher layer.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in (layer or {}).items():
            if value is None:
                continue
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = merge_layers(current, value)
            else:
                merged[key] = value
    return merged


def env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Build config dict from COLONY_* environment variables.

    Returns:
        Config dict with values from environment.
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    root = env.get("COLONY_ROOT")
    if root:
        overrides.setdefault("store", {})["root"] = root

    agent_id = env.get("COLONY_AGENT_ID")
    if agent_id:
        overrides.setdefault("agent", {})["id"] = agent_id

    log_path = env.get("COLONY_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    retries = env.get("COLONY_CLAIM_RETRIES")
    if retries:
        try:
            overrides.setdefault("claims", {})["max_retries"] = int(retries)
        except ValueError:
            raise ValidationError(
                f"COLONY_CLAIM_RETRIES must be an integer, got {retries!r}"
            ) from None

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValidationError(f"config section '{name}' must be a mapping")
    return value


def _number(section: dict[str, Any], key: str, default: Any, kind: type) -> Any:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"config value '{key}' must be a number, got {value!r}")
    if value < 0:
        raise ValidationError(f"config value '{key}' must not be negative")
    return kind(value)


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass.

    Raises:
        ValidationError: If a known section has the wrong shape.
    """
    store_data = _section(data, "store")
    store = StoreConfig(root=str(store_data.get("root", StoreConfig.root)))

    claims_data = _section(data, "claims")
    defaults = ClaimConfig()
    claims = ClaimConfig(
        max_retries=_number(claims_data, "max_retries", defaults.max_retries, int),
        backoff=_number(claims_data, "backoff", defaults.backoff, float),
        backoff_max=_number(claims_data, "backoff_max", defaults.backoff_max, float),
    )

    agent_data = _section(data, "agent")
    agent_id = agent_data.get("id")
    agent = AgentConfig(id=str(agent_id) if agent_id is not None else None)

    log_data = _section(data, "logging")
    verbose = log_data.get("verbose")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=None if verbose is None else _number(log_data, "verbose", None, int),
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(
        store=store,
        claims=claims,
        agent=agent,
        logging=logging_config,
        extra=extra,
    )


def load_config(
    project_dir: str | Path | None = None,
    config_path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> Config:
    """Load configuration from all sources.

    Order (later overrides earlier):
    1. User config
    2. Project config ($project_dir/.colony/config.yaml)
    3. Explicit config file (``--config``)
    4. COLONY_* environment variables

    Args:
        project_dir: Project directory for project-level config.
        config_path: Extra config file; it must exist.
        environ: Environment mapping, defaults to ``os.environ``.

    Raises:
        ValidationError: If ``config_path`` is missing or a value is malformed.
    """
    layers = [load_yaml_file(path) for path in get_config_paths(project_dir)]

    if config_path is not None:
        explicit = Path(config_path)
        if not explicit.is_file():
            raise ValidationError(f"config file not found: {explicit}")
        layers.append(load_yaml_file(explicit))

    layers.append(env_overrides(environ))
    return dict_to_config(merge_layers(*layers))
