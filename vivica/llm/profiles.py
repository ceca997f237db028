"""Profiles, custom models and the per-request effective settings.

The settings UI owns this configuration.  The core receives it as a
``ChatConfig`` object and only reads it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from vivica.llm.models import BASELINE_MODEL, resolve_model

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

GLOBAL_PROFILE_ID = "global"

DEFAULT_SYSTEM_PROMPT = (
    "You are Vivica, an intelligent and helpful AI assistant. You have a warm, "
    "conversational tone and provide thoughtful, detailed responses."
)


class CustomModel(BaseModel):
    """A user-defined model entry."""

    id: str
    name: str
    model_id: str


class Profile(BaseModel):
    """A named persona with its own prompt, model and temperature."""

    id: str
    name: str
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    model: str = BASELINE_MODEL
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)


class ChatConfig(BaseModel):
    """Application-wide chat configuration."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    default_model: str = BASELINE_MODEL
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    custom_models: list[CustomModel] = Field(default_factory=list)
    deleted_model_ids: list[str] = Field(default_factory=list)
    profiles: list[Profile] = Field(default_factory=list)
    active_profile_id: str = GLOBAL_PROFILE_ID

    def get_profile(self, profile_id: str) -> Profile | None:
        for profile in self.profiles:
            if profile.id == profile_id:
                return profile
        return None


@dataclass(frozen=True)
class EffectiveSettings:
    system_prompt: str
    model: str
    temperature: float


def load_chat_config(path: Path) -> ChatConfig:
    """Read a ``ChatConfig`` from a JSON file; a missing file gives the defaults."""
    if not path.exists():
        return ChatConfig()
    return ChatConfig.model_validate_json(path.read_text(encoding="utf-8"))


def get_effective_settings(config: ChatConfig) -> EffectiveSettings:
    """Resolve the active profile (or global settings) into request settings."""
    profile_id = config.active_profile_id
    if profile_id != GLOBAL_PROFILE_ID:
        profile = config.get_profile(profile_id)
        if profile is not None:
            return EffectiveSettings(
                system_prompt=profile.system_prompt,
                model=resolve_model(profile.model, config),
                temperature=profile.temperature,
            )
        logger.warning("Profile %r not found, using global settings", profile_id)

    return EffectiveSettings(
        system_prompt=config.system_prompt,
        model=resolve_model(config.default_model, config),
        temperature=config.temperature,
    )
