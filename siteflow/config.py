"""siteflow Configuration.

Includes:
- AssistantConfig: Assistant settings with environment variable support
- RemoteConfig: Remote generation provider settings

Environment Variables:
    SITEFLOW_PROJECT_PATH: Project directory path
    SITEFLOW_AI_MODE: local, remote or hybrid
    SITEFLOW_MEMORY_CAPACITY: Conversation turns kept in memory
    SITEFLOW_MIN_MATCH_SCORE: Minimum fuzzy score for entity matches
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AIMode(str, Enum):
    """Which extractor interprets user input."""

    LOCAL = "local"  # Rule-based recognizer only
    REMOTE = "remote"  # Remote extraction first, rules as fallback
    HYBRID = "hybrid"  # Rules first, remote only when rules find nothing


class RemoteConfig(BaseModel):
    """Remote generation provider settings.

    The API key is never written to the config file; it is resolved at
    request time from the environment, a secure store or organisation
    settings.

    Attributes:
        enabled: Whether remote extraction may be used at all
        provider: openai, google or generic
        endpoint: Provider URL (defaults per provider when unset)
        model: Model name passed to the provider
        account: Secure-store account holding the API key
    """

    enabled: bool = False
    provider: str = "openai"
    endpoint: Optional[str] = None
    model: Optional[str] = None
    account: str = "remote-api-key"
    api_key: Optional[str] = None

    max_retries: int = 2
    initial_delay: float = 1.0
    max_delay: float = 10.0
    timeout: float = 60.0
    probe_timeout: float = 7.0


class AssistantConfig(BaseSettings):
    """Assistant configuration with environment variable support.

    Configuration is loaded from environment variables with SITEFLOW_
    prefix. For example, SITEFLOW_AI_MODE sets ai_mode.

    Precedence (highest to lowest):
        1. Environment variables (SITEFLOW_*)
        2. Config file (.siteflow/config.yaml)
        3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="SITEFLOW_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    project_path: Path = Field(default_factory=Path.cwd)
    ai_mode: AIMode = AIMode.LOCAL

    # Conversation memory
    memory_capacity: int = Field(default=50, ge=1)
    memory_warning_ratio: float = Field(default=0.8, gt=0.0, le=1.0)

    # Entity resolution
    min_match_score: float = Field(default=0.6, ge=0.0, le=1.0)
    quantity_window: int = Field(default=50, ge=0)

    # Remote extraction
    max_hint_assets: int = Field(default=50, ge=0)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)

    @property
    def config_file(self) -> Path:
        return self.project_path / ".siteflow" / "config.yaml"

    @property
    def memory_path(self) -> Path:
        return self.project_path / ".siteflow" / "memory"

    @classmethod
    def load(cls, path: Path) -> "AssistantConfig":
        """Load configuration from .siteflow/config.yaml if it exists.

        Args:
            path: Project path to load configuration for

        Returns:
            AssistantConfig with file values applied over the defaults.
            Environment variables still win over the file.
        """
        from ruamel.yaml import YAML

        config = cls(project_path=path)
        config_file = config.config_file

        if config_file.exists():
            yaml = YAML()
            with config_file.open() as f:
                data = yaml.load(f)

            if data:
                file_values = {k: v for k, v in dict(data).items() if k in cls.model_fields}
                file_values.pop("project_path", None)
                if "remote" in file_values:
                    file_values["remote"] = dict(file_values["remote"] or {})
                env_config = config.model_dump(exclude_unset=True)
                env_config.pop("project_path", None)
                merged = {**file_values, **env_config}
                # Nested env vars (SITEFLOW_REMOTE__MODEL) only override their own field
                if "remote" in file_values and "remote" in env_config:
                    merged["remote"] = {**file_values["remote"], **env_config["remote"]}
                config = cls.model_validate({**merged, "project_path": path})

        return config

    def save(self) -> None:
        """Save configuration to .siteflow/config.yaml in the project path."""
        from ruamel.yaml import YAML

        config_file = self.config_file
        config_file.parent.mkdir(parents=True, exist_ok=True)

        yaml = YAML()
        yaml.default_flow_style = False

        data = {
            "ai_mode": self.ai_mode.value,
            "memory_capacity": self.memory_capacity,
            "memory_warning_ratio": self.memory_warning_ratio,
            "min_match_score": self.min_match_score,
            "quantity_window": self.quantity_window,
            "max_hint_assets": self.max_hint_assets,
            "remote": self.remote.model_dump(exclude={"api_key"}),
        }

        with config_file.open("w") as f:
            yaml.dump(data, f)


__all__ = ["AIMode", "AssistantConfig", "RemoteConfig"]
