"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Vivica configuration. All values come from environment variables."""

    # Remote chat-completion service (OpenRouter-compatible)
    openrouter_api_key: str = Field(default="")
    chat_api_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions")
    request_timeout_seconds: float = Field(default=60.0)
    app_title: str = Field(default="Vivica AI Assistant")
    app_referer: str = Field(default="")

    # Database
    database_path: Path = Field(default=Path("data/vivica.db"))

    # Profiles, custom models and model defaults (JSON, managed by the settings UI)
    chat_config_path: Path = Field(default=Path("data/chat_config.json"))

    # Memory
    memory_context_limit: int = Field(default=5)
    memory_token_budget: int = Field(default=800)
    memory_extraction_enabled: bool = Field(default=True)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="VIVICA_",
        env_file=_env_file(),
        env_file_encoding="utf-8",
        extra="forbid",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def has_api_key(self) -> bool:
        return bool(self.openrouter_api_key.strip())


settings = Settings()
