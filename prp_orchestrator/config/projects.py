"""Project registry backed by the global configuration file.

Every mutating operation loads the file, applies one change and writes it
back, so concurrent CLI invocations only ever race on a single edit.
"""

from pathlib import Path
from typing import Any

import structlog
from pydantic import SecretStr, ValidationError

from prp_orchestrator.config.settings import BotCredentials, DefaultsConfig, GlobalConfig, ProjectEntry, config_file
from prp_orchestrator.exceptions import ConfigurationError
from prp_orchestrator.models.domain import ProjectContext

log = structlog.get_logger(__name__)


class ConfigStore:
    """Load, modify and save the global configuration."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else config_file()

    def load(self) -> GlobalConfig:
        """Load the configuration, falling back to defaults when absent."""
        if not self.path.exists():
            return GlobalConfig()
        return GlobalConfig.from_yaml(self.path)

    def save(self, config: GlobalConfig) -> None:
        config.to_yaml(self.path)
        log.debug("config_saved", path=str(self.path))

    def add_project(self, name: str, project_path: str | Path) -> ProjectEntry:
        """Register a project.

        Raises:
            ConfigurationError: If the path does not exist or the name or
                path is already registered
        """
        config = self.load()
        resolved = Path(project_path).resolve()

        if not resolved.exists():
            raise ConfigurationError(f"Path does not exist: {resolved}")

        existing = next(
            (p for p in config.projects if p.path == str(resolved) or p.name == name),
            None,
        )
        if existing:
            raise ConfigurationError(f"Project already registered: {existing.name} ({existing.path})")

        entry = ProjectEntry(name=name, path=str(resolved))
        config.projects.append(entry)
        self.save(config)
        log.info("project_added", project=name, path=str(resolved))
        return entry

    def remove_project(self, name_or_path: str) -> ProjectEntry:
        config = self.load()
        entry = config.find_project(name_or_path)
        if entry is None:
            raise ConfigurationError(f"Project not found: {name_or_path}")

        config.projects.remove(entry)
        self.save(config)
        log.info("project_removed", project=entry.name)
        return entry

    def set_enabled(self, name: str, enabled: bool) -> ProjectEntry:
        config = self.load()
        entry = next((p for p in config.projects if p.name == name), None)
        if entry is None:
            raise ConfigurationError(f"Project not found: {name}")

        entry.enabled = enabled
        self.save(config)
        return entry

    def set_bot(self, username: str, token: str) -> None:
        config = self.load()
        try:
            config.bot = BotCredentials(username=username, token=SecretStr(token))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid bot credentials: {e}") from e
        self.save(config)
        log.info("bot_credentials_set", username=username)

    def update_defaults(self, **changes: Any) -> GlobalConfig:
        unknown = set(changes) - set(DefaultsConfig.model_fields)
        if unknown:
            raise ConfigurationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        config = self.load()
        try:
            config.defaults = config.defaults.model_validate({**config.defaults.model_dump(), **changes})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid defaults: {e}") from e
        self.save(config)
        return config

    def list_projects(self) -> list[ProjectEntry]:
        return self.load().projects

    def enabled_contexts(self) -> list[ProjectContext]:
        return self.load().enabled_contexts()
