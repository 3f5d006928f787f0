"""Configuration management for Grok CLI."""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from grok_cli.exceptions import ConfigurationError


# Paths
DEFAULT_CONFIG_PATH = Path("~/.grok/settings.yaml").expanduser()
LOCAL_CONFIG_PATH = Path(".grok") / "settings.yaml"

DEFAULT_MODEL = "grok-code-fast-1"
DEFAULT_BASE_URL = "https://api.x.ai/v1"


class AgentConfig(BaseModel):
    """Agent loop bounds."""

    max_tool_rounds: int = 400
    max_turns: int = 500


class MorphConfig(BaseModel):
    """Morph Fast Apply configuration."""

    api_key: str = ""
    base_url: str = "https://api.morphllm.com/v1"
    model: str = "morph-v3-large"
    timeout: float = 120.0

    def resolved_api_key(self) -> str:
        """Return configured key, falling back to MORPH_API_KEY."""
        return self.api_key or os.environ.get("MORPH_API_KEY", "")


class ShellToolConfig(BaseModel):
    """Shell tool configuration."""

    timeout: int = 30
    blocked: list[str] = [
        "rm -rf /",
        "mkfs",
        ":(){:|:&};:",
    ]
    max_output_chars: int = 10000


class SearchToolConfig(BaseModel):
    """Search tool configuration."""

    max_results: int = 50
    max_file_size: int = 1_000_000


class TelemetryConfig(BaseModel):
    """Telemetry configuration."""

    enabled: bool = False
    exporter: str = "log"
    endpoint: str = "http://localhost:4317"
    service_name: str = "grok-agent"
    service_version: str = "1.0.0"
    trace_sample_ratio: float = 1.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    format: Literal["console", "json"] = "console"


class Config(BaseSettings):
    """Main configuration for Grok CLI."""

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    models: list[str] = Field(
        default_factory=lambda: [
            "grok-code-fast-1",
            "grok-4-latest",
            "grok-4-fast-reasoning",
            "grok-3-latest",
            "grok-3-fast",
            "grok-3-mini-fast",
        ]
    )
    max_tokens: int = 64000
    temperature: float = 0.7
    timeout: float = 360.0
    agent: AgentConfig = Field(default_factory=AgentConfig)
    morph: MorphConfig = Field(default_factory=MorphConfig)
    shell: ShellToolConfig = Field(default_factory=ShellToolConfig)
    search: SearchToolConfig = Field(default_factory=SearchToolConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="GROK_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with project-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_PATH
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file.

        Environment variables take precedence over values from the file.
        """
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid settings file {config_path}: {e}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Invalid settings file {config_path}: expected a mapping")

        env_overrides = cls().model_dump(exclude_defaults=True)
        return cls(**_deep_merge(data, env_overrides))

    @classmethod
    def load(cls) -> "Config":
        """Load configuration, preferring env vars over YAML."""
        return cls.from_yaml()

    def save(self, path: Path | str | None = None) -> Path:
        """Save configuration to YAML file."""
        config_path = Path(path).expanduser() if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        return config_path

    def validate_model(self, model: str) -> str:
        """Return model when it is selectable, raise ValueError otherwise."""
        name = (model or "").strip()
        if name in self.models or name.startswith("grok-"):
            return name
        raise ValueError(
            f"Invalid model: {name}. Valid models: {', '.join(self.models)}."
        )


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge nested override mapping onto base without mutating either."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def update_settings_file(path: Path | str, updates: dict[str, Any]) -> Path:
    """Merge ``updates`` into a YAML settings file, keeping its other keys."""
    config_path = Path(path).expanduser()
    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    merged = _deep_merge(data, updates)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(merged, f, default_flow_style=False, sort_keys=False)
    return config_path


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
