"""
Configuration management for docs-translator.

Handles loading configuration from YAML files and environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if present (before Settings initialization)
load_dotenv()


class GovernorConfig(BaseModel):
    """
    Rate limits for one named service.

    All intervals are in seconds. ``reservoir=None`` disables the call budget.
    """

    model_config = {"frozen": True}

    max_concurrent: int = Field(default=1, ge=1)
    min_interval: float = Field(default=0.0, ge=0.0)
    reservoir: int | None = Field(default=None, ge=0)
    reservoir_refresh_amount: int = Field(default=1, ge=1)
    reservoir_refresh_interval: float | None = Field(default=None, gt=0.0)
    high_water: int | None = Field(default=100, ge=1)
    debug: bool = Field(default=False)

    @model_validator(mode="after")
    def check_reservoir_refill(self) -> GovernorConfig:
        """A finite reservoir without a refill interval would stall forever once drained."""
        if self.reservoir is not None and self.reservoir_refresh_interval is None:
            raise ValueError("reservoir requires reservoir_refresh_interval")
        return self


# Preset governor configurations for well-known services
GOVERNOR_PRESETS: dict[str, GovernorConfig] = {
    # GitHub: 5000 req/hour authenticated, ~1.4 req/s; small burst
    "github_api": GovernorConfig(
        max_concurrent=10,
        min_interval=0.72,
        reservoir=5,
        reservoir_refresh_amount=1,
        reservoir_refresh_interval=0.72,
        high_water=100,
    ),
    # Free-tier LLM APIs (e.g. OpenRouter free models): ~3 req/minute
    "free_llm": GovernorConfig(
        max_concurrent=5,
        min_interval=20.0,
        reservoir=5,
        reservoir_refresh_amount=1,
        reservoir_refresh_interval=20.0,
        high_water=50,
    ),
    # Paid-tier LLM APIs: 60-500 req/minute depending on tier
    "paid_llm": GovernorConfig(
        max_concurrent=3,
        min_interval=1.0,
        reservoir=10,
        reservoir_refresh_amount=1,
        reservoir_refresh_interval=1.0,
        high_water=100,
    ),
}


class RetryConfig(BaseModel):
    """Exponential backoff policy for network calls (delays in seconds)."""

    model_config = {"frozen": True}

    max_retries: int = Field(default=5, ge=0, le=20)
    initial_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=60.0, ge=0.0)
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter: bool = Field(default=True)


class ChunkingConfig(BaseModel):
    """Token budgets used to decide and perform chunking."""

    max_tokens: int = Field(default=4000, ge=100)
    system_prompt_reserve: int = Field(default=1000, ge=0)
    token_buffer: int = Field(default=500, ge=0)
    overlap: int = Field(default=200, ge=0)
    chars_per_token: float = Field(default=3.5, gt=0.0)

    @model_validator(mode="after")
    def check_budgets(self) -> ChunkingConfig:
        """Reserves must leave room for content."""
        if self.system_prompt_reserve >= self.max_tokens:
            raise ValueError("system_prompt_reserve must be smaller than max_tokens")
        if self.token_buffer >= self.max_tokens:
            raise ValueError("token_buffer must be smaller than max_tokens")
        return self

    @property
    def max_input_tokens(self) -> int:
        """Largest document that is translated in a single call."""
        return self.max_tokens - self.system_prompt_reserve

    @property
    def segment_tokens(self) -> int:
        """Default token budget for one chunk."""
        return self.max_tokens - self.token_buffer


class RatioBand(BaseModel):
    """Accepted [min, max] band for a translated/source ratio."""

    min: float = Field(ge=0.0)
    max: float = Field(ge=0.0)

    def contains(self, ratio: float) -> bool:
        return self.min <= ratio <= self.max


class ValidationConfig(BaseModel):
    """
    Structural validation thresholds.

    Tunable defaults; values outside a band only produce warnings.
    """

    size: RatioBand = Field(default_factory=lambda: RatioBand(min=0.5, max=2.0))
    heading: RatioBand = Field(default_factory=lambda: RatioBand(min=0.8, max=1.2))
    code_block: RatioBand = Field(default_factory=lambda: RatioBand(min=0.8, max=1.2))
    link: RatioBand = Field(default_factory=lambda: RatioBand(min=0.8, max=1.2))
    required_frontmatter_keys: tuple[str, ...] = Field(default=("title",))


class LLMConfig(BaseModel):
    """Configuration for the OpenAI-compatible LLM endpoint."""

    provider: str = Field(default="openrouter")
    model: str = Field(default="google/gemini-2.0-flash-exp:free")
    base_url: str = Field(default="https://openrouter.ai/api/v1")
    api_key: str = Field(default="")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8192, ge=256, le=128000)
    timeout: float = Field(default=120.0, ge=1.0)
    # Governor queue that LLM calls are scheduled on
    service: str = Field(default="llm")


class LanguagesConfig(BaseModel):
    """Source/target language codes and optional glossary."""

    source: str = Field(default="en")
    target: str = Field(default="pt-br")
    glossary_file: Path | None = Field(default=None)

    @field_validator("source", "target")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        """Language codes are compared lower-case."""
        return v.strip().lower()

    def load_glossary(self) -> str | None:
        """Read the glossary file, if one is configured."""
        if self.glossary_file is None:
            return None
        path = Path(self.glossary_file).expanduser()
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8").strip() or None


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO")
    file: Path | None = Field(default=None)
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    max_file_size_mb: int = Field(default=10, ge=1, le=100)
    backup_count: int = Field(default=5, ge=1, le=20)

    @field_validator("level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()


def _default_governors() -> dict[str, GovernorConfig]:
    return {
        "llm": GOVERNOR_PRESETS["free_llm"],
    }


class Settings(BaseSettings):
    """Main settings class that combines all configurations."""

    model_config = SettingsConfigDict(
        env_prefix="",  # No prefix for simpler env vars
        env_nested_delimiter="__",
        extra="ignore",
    )

    llm: LLMConfig = Field(default_factory=LLMConfig)
    languages: LanguagesConfig = Field(default_factory=LanguagesConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    governor: dict[str, GovernorConfig] = Field(default_factory=_default_governors)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def __init__(self, **data: Any) -> None:
        """Initialize with environment variable fallbacks for API keys."""
        super().__init__(**data)
        # Override API key from environment if not set in config
        if not self.llm.api_key:
            self.llm.api_key = os.getenv("LLM_API_KEY", "")

    @field_validator("governor", mode="before")
    @classmethod
    def resolve_presets(cls, v: Any) -> Any:
        """Allow ``governor: {llm: paid_llm}`` as shorthand for a preset."""
        if not isinstance(v, dict):
            return v
        resolved = {}
        for name, value in v.items():
            if isinstance(value, str):
                if value not in GOVERNOR_PRESETS:
                    raise ValueError(
                        f"Unknown governor preset '{value}'. Valid options: {list(GOVERNOR_PRESETS)}"
                    )
                resolved[name] = GOVERNOR_PRESETS[value]
            else:
                resolved[name] = value
        return resolved

    @classmethod
    def from_yaml(cls, path: Path | str) -> Settings:
        """Load settings from a YAML file, with environment variable overrides."""
        path = Path(path)
        if not path.exists():
            # Return defaults if file doesn't exist
            return cls()

        with open(path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        # Process environment variable substitutions in YAML values
        yaml_config = _substitute_env_vars(yaml_config)

        return cls(**yaml_config)


def _substitute_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively substitute ${ENV_VAR} patterns in config values."""
    result = {}
    for key, value in config.items():
        if isinstance(value, dict):
            result[key] = _substitute_env_vars(value)
        elif isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            env_var = value[2:-1]
            result[key] = os.getenv(env_var, "")
        elif isinstance(value, list):
            result[key] = [
                _substitute_env_vars(item) if isinstance(item, dict) else item for item in value
            ]
        else:
            result[key] = value
    return result


def load_config(path: Path | str | None = None) -> Settings:
    """
    Load configuration from YAML file or return defaults.

    Args:
        path: Path to YAML config file. If None, looks for config.yaml in current directory.

    Returns:
        Settings instance with merged YAML and environment configurations.
    """
    if path is None:
        default_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(".docs-translator.yaml"),
        ]
        for p in default_paths:
            if p.exists():
                path = p
                break

    if path is not None:
        return Settings.from_yaml(path)

    return Settings()


DEFAULT_CONFIG = """# docs-translator configuration
llm:
  # Any OpenAI-compatible endpoint (OpenRouter by default)
  model: "google/gemini-2.0-flash-exp:free"
  base_url: "https://openrouter.ai/api/v1"
  api_key: "${LLM_API_KEY}"
  temperature: 0.1
  max_tokens: 8192

languages:
  source: "en"
  target: "pt-br"
  # Optional file with "term -> translation" lines passed to the prompt
  # glossary_file: "./glossary.txt"

chunking:
  # Model context budget and reserves (tokens)
  max_tokens: 4000
  system_prompt_reserve: 1000
  token_buffer: 500
  # Tokens of preceding text passed as read-only context to each chunk
  overlap: 200

retry:
  max_retries: 5
  initial_delay: 1.0
  max_delay: 60.0
  multiplier: 2.0
  jitter: true

governor:
  # Either a preset name (free_llm, paid_llm, github_api) or explicit limits
  llm: free_llm

logging:
  level: "INFO"
  # file: "./logs/translation.log"
"""


def create_default_config(path: Path | str = "config.yaml") -> None:
    """Create a default configuration file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(DEFAULT_CONFIG)
