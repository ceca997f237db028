"""Available-model list and deterministic model fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vivica.llm.profiles import ChatConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelOption:
    id: str
    name: str
    is_custom: bool = False


BUILTIN_MODELS: tuple[ModelOption, ...] = (
    ModelOption("openai/gpt-4o", "GPT-4o"),
    ModelOption("openai/gpt-4o-mini", "GPT-4o Mini"),
    ModelOption("anthropic/claude-3.5-sonnet", "Claude 3.5 Sonnet"),
    ModelOption("anthropic/claude-3-haiku", "Claude 3 Haiku"),
    ModelOption("google/gemini-pro-1.5", "Gemini Pro 1.5"),
    ModelOption("meta-llama/llama-3.1-70b-instruct", "Llama 3.1 70B"),
    ModelOption("mistralai/mistral-large", "Mistral Large"),
)

# Used when every built-in model has been deleted and no custom model exists.
BASELINE_MODEL = "openai/gpt-4o"


def available_models(config: ChatConfig) -> list[ModelOption]:
    """Built-in models minus deleted ids, followed by custom models, in list order."""
    deleted = set(config.deleted_model_ids)
    models = [m for m in BUILTIN_MODELS if m.id not in deleted]
    models.extend(
        ModelOption(id=m.model_id, name=m.name, is_custom=True) for m in config.custom_models
    )
    return models


def friendly(model_id: str, config: ChatConfig) -> str:
    """Return the display name for a model ID, or the ID itself."""
    for m in available_models(config):
        if m.id == model_id:
            return m.name
    return model_id


def resolve_model(requested: str | None, config: ChatConfig) -> str:
    """Map a requested model to one that is currently available.

    Order: the requested model, then the configured default, then the first
    available model, then ``BASELINE_MODEL``.  Reads *config* only.
    """
    ids = [m.id for m in available_models(config)]
    if requested and requested in ids:
        return requested

    if config.default_model in ids:
        fallback = config.default_model
    elif ids:
        fallback = ids[0]
    else:
        fallback = BASELINE_MODEL

    logger.warning("Model %r is unavailable, falling back to %s", requested, fallback)
    return fallback
