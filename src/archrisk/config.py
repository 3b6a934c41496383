"""
Configuration management for archrisk

Provides pydantic-based configuration with environment variable support
and YAML file loading capabilities.
"""

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .observability.config import TelemetryConfig

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_PROMPTS_DIR = str(Path(__file__).parent / "prompts")


class LLMRouterConfig(BaseModel):
    """Single LLM router configuration"""

    provider: str = "openai"  # "openai", "local", "mock"
    model: str = "gemini-2.5-flash"
    api_key: Optional[str] = None
    # Environment variable consulted when api_key is unset
    api_key_env: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8192, gt=0)
    timeout: float = Field(default=60.0, gt=0)
    mock_responses_path: Optional[str] = None

    def resolve_api_key(self) -> Optional[str]:
        """Return the explicit key or the one found in api_key_env"""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.getenv(self.api_key_env) or None
        return None


class LLMConfig(BaseModel):
    """LLM configuration"""

    default: str = "gemini"
    routers: dict[str, LLMRouterConfig] = Field(
        default_factory=lambda: {
            "gemini": LLMRouterConfig(
                base_url=GEMINI_OPENAI_BASE_URL, api_key_env="GEMINI_API_KEY"
            )
        }
    )


class PromptsConfig(BaseModel):
    """Prompt template location and selection"""

    prompts_dir: str = DEFAULT_PROMPTS_DIR
    risk_template: str = "risk_analysis:v1"


class ServerConfig(BaseModel):
    """HTTP server settings"""

    host: str = "0.0.0.0"
    port: int = Field(default=5000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class ArchriskConfig(BaseSettings):
    """Main archrisk configuration"""

    model_config = SettingsConfigDict(
        env_prefix="ARCHRISK_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    llm: LLMConfig = Field(default_factory=LLMConfig)
    prompts: PromptsConfig = Field(default_factory=PromptsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    log_level: str = "INFO"

    @classmethod
    def load_from_file(cls, config_path: str = "archrisk.yml") -> "ArchriskConfig":
        """Load configuration from YAML file with environment variable override"""
        import yaml

        config_file = Path(config_path)
        config_data: dict[str, Any] = {}

        if config_file.exists():
            with open(config_file, encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def get_llm_router_config(
        self, router_name: Optional[str] = None
    ) -> LLMRouterConfig:
        """Get LLM router configuration"""
        router_name = router_name or self.llm.default
        if router_name not in self.llm.routers:
            raise ValueError(f"LLM router '{router_name}' not found in configuration")
        return self.llm.routers[router_name]


# Global configuration instance
_config: Optional[ArchriskConfig] = None


def get_config() -> ArchriskConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = ArchriskConfig.load_from_file()
    return _config


def set_config(config: Optional[ArchriskConfig]) -> None:
    """Set (or reset with None) the global configuration instance"""
    global _config
    _config = config
