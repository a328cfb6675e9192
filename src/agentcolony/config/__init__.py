"""Configuration for agentcolony.

Config files cascade from user to project level, then an explicit file,
then COLONY_* environment variables:
- User: ~/.config/agentcolony/config.yaml (or ~/.colony/config.yaml)
- Project: $project_dir/.colony/config.yaml

Usage:
    from agentcolony.config import load_config

    config = load_config(project_dir="/path/to/project")
    print(config.claims.max_retries)
"""

from agentcolony.config.loader import (
    dict_to_config,
    env_overrides,
    load_config,
    load_yaml_file,
    merge_layers,
)
from agentcolony.config.paths import get_config_paths, get_user_config_path
from agentcolony.config.schema import (
    AgentConfig,
    ClaimConfig,
    Config,
    LoggingConfig,
    StoreConfig,
)

__all__ = [
    "AgentConfig",
    "ClaimConfig",
    "Config",
    "LoggingConfig",
    "StoreConfig",
    "dict_to_config",
    "env_overrides",
    "get_config_paths",
    "get_user_config_path",
    "load_config",
    "load_yaml_file",
    "merge_layers",
]
