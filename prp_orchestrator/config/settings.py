"""
Configuration system using Pydantic for type-safe settings management.

Global configuration lives in ``~/.prp-orchestrator/config.yaml`` (the
directory can be moved with ``PRP_ORCHESTRATOR_HOME``) and holds the
registered projects, timeout defaults and optional bot credentials used to
author commits and pull requests.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from prp_orchestrator.exceptions import ConfigurationError
from prp_orchestrator.models.domain import ProjectContext

DEFAULT_MASTER_FILE = Path("PRPs") / "master-plan.yaml"
DEFAULT_ENRICHED_DIR = Path("PRPs") / "enriched"
LOCK_FILE_NAME = ".prp-lock"


def config_home() -> Path:
    """Directory holding the global configuration."""
    override = os.getenv("PRP_ORCHESTRATOR_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".prp-orchestrator"


def config_file() -> Path:
    """Path of the global configuration file."""
    return config_home() / "config.yaml"


class BotCredentials(BaseModel):
    """Bot account used as commit author and pull request creator.

    Supports environment references in YAML:
    - token: "${PRP_BOT_TOKEN}"
    """

    username: str = Field(..., min_length=1, description="Bot account login")
    token: SecretStr = Field(..., description="Personal access token for the bot account")
    email: str | None = Field(default=None, description="Commit email (defaults to the noreply address)")

    @property
    def commit_email(self) -> str:
        return self.email or f"{self.username}@users.noreply.github.com"


class DefaultsConfig(BaseModel):
    """Orchestrator-wide defaults."""

    check_interval_minutes: int = Field(default=3, ge=1, description="Watch mode polling interval")
    enrichment_timeout_minutes: int = Field(default=25, ge=1)
    execution_timeout_minutes: int = Field(default=20, ge=1)
    revision_timeout_minutes: int = Field(default=15, ge=1)
    lock_max_age_minutes: int = Field(
        default=45,
        ge=1,
        description="Locks older than this are considered abandoned; must exceed the longest agent timeout",
    )
    max_actions_per_run: int = Field(default=20, ge=1, description="Upper bound on actions in one project run")
    agent_command: str = Field(default="claude", description="Coding agent executable")

    def timeouts(self) -> dict[str, float]:
        """Agent timeouts in seconds, keyed by workflow."""
        return {
            "enrichment": self.enrichment_timeout_minutes * 60.0,
            "execution": self.execution_timeout_minutes * 60.0,
            "revision": self.revision_timeout_minutes * 60.0,
        }


class ValidationConfig(BaseModel):
    """Project-defined validation commands.

    When a command is not configured, it is detected from package.json
    scripts; when nothing is found the check is skipped.
    """

    build: str | None = None
    test: str | None = None
    format: str | None = None

    def as_dict(self) -> dict[str, str]:
        return {name: command for name, command in self.model_dump().items() if command}


class ProjectEntry(BaseModel):
    """A registered project."""

    name: str = Field(..., min_length=1)
    path: str = Field(..., description="Absolute path of the project's working tree")
    enabled: bool = True
    master_file: str | None = Field(default=None, description="Override for PRPs/master-plan.yaml")
    validation: ValidationConfig | None = None

    def to_context(self) -> ProjectContext:
        root = Path(self.path)
        return ProjectContext(
            name=self.name,
            path=root,
            master_file=Path(self.master_file) if self.master_file else root / DEFAULT_MASTER_FILE,
            enriched_dir=root / DEFAULT_ENRICHED_DIR,
            lock_file=root / LOCK_FILE_NAME,
            validation=self.validation.as_dict() if self.validation else {},
        )


def project_context_for(path: str | Path) -> ProjectContext:
    """Build a context for an unregistered project path."""
    root = Path(path).resolve()
    return ProjectEntry(name=root.name, path=str(root)).to_context()


class GlobalConfig(BaseSettings):
    """Main orchestrator settings.

    Combines the registered projects, defaults and bot credentials, and
    provides methods for loading from and saving to YAML with environment
    variable interpolation.
    """

    model_config = SettingsConfigDict(
        env_prefix="PRP_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    projects: list[ProjectEntry] = Field(default_factory=list)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    bot: BotCredentials | None = None

    def find_project(self, name_or_path: str) -> ProjectEntry | None:
        resolved = str(Path(name_or_path).resolve())
        return next(
            (p for p in self.projects if p.name == name_or_path or p.path == resolved),
            None,
        )

    def enabled_contexts(self) -> list[ProjectContext]:
        return [project.to_context() for project in self.projects if project.enabled]

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> GlobalConfig:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} syntax for environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            GlobalConfig instance

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            yaml_content = config_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except TypeError as e:
            raise ConfigurationError(f"Missing or invalid configuration fields: {e}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    def to_yaml(self, config_path: str | Path) -> None:
        """Write settings to YAML, creating the parent directory if needed."""
        data: dict[str, Any] = self.model_dump(mode="json", exclude_none=True)
        if self.bot is not None:
            data["bot"]["token"] = self.bot.token.get_secret_value()

        config_file = Path(config_path)
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            config_file.write_text(yaml.safe_dump(data, sort_keys=False, indent=2), encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot write configuration file: {config_path}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Supports two syntaxes:
        - ${VAR_NAME} - Required environment variable (raises if not set)
        - ${VAR_NAME:-default} - Optional with default value

        YAML comment lines are preserved unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
