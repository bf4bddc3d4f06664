"""Configuration system for the orchestrator.

This package provides type-safe configuration management using Pydantic,
including registered projects, timeouts and bot credentials.

Key Components:
    - GlobalConfig: Main configuration container with YAML loading support
    - DefaultsConfig: Timeouts, lock age and agent command
    - BotCredentials: Optional bot identity for commits and pull requests
    - ProjectEntry: A registered project
    - ConfigStore: Load/modify/save helper used by the CLI

Example:
    >>> from prp_orchestrator.config import ConfigStore
    >>> config = ConfigStore().load()
    >>> contexts = config.enabled_contexts()
"""

from prp_orchestrator.config.projects import ConfigStore
from prp_orchestrator.config.settings import (
    BotCredentials,
    DefaultsConfig,
    GlobalConfig,
    ProjectEntry,
    ValidationConfig,
    config_file,
    config_home,
    project_context_for,
)

__all__ = [
    "BotCredentials",
    "ConfigStore",
    "DefaultsConfig",
    "GlobalConfig",
    "ProjectEntry",
    "ValidationConfig",
    "config_file",
    "config_home",
    "project_context_for",
]
