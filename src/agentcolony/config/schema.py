"""Configuration schema dataclasses for agentcolony.

All fields have defaults so partial configs at each level merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_ROOT = ".colony"


@dataclass
class StoreConfig:
    """Where the coordination root lives."""

    root: str = DEFAULT_ROOT  # Relative paths resolve against the project dir


@dataclass
class ClaimConfig:
    """Optimistic retry policy for task transitions.

    Example config.yaml:
        claims:
          max_retries: 8
          backoff: 0.01
          backoff_max: 0.25
    """

    max_retries: int = 8  # Re-reads after a lost CAS before Conflict
    backoff: float = 0.01  # First retry delay (seconds), doubles per retry
    backoff_max: float = 0.25  # Cap for a single delay


@dataclass
class AgentConfig:
    """Identity of the agent running this process."""

    id: str | None = None  # Used as the message sender when --from is absent


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    store: StoreConfig = field(default_factory=StoreConfig)
    claims: ClaimConfig = field(default_factory=ClaimConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level keys, kept for forward compatibility
    extra: dict[str, Any] = field(default_factory=dict)
