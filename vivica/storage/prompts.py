"""Saved prompt templates."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from vivica.chat.models import utc_now
from vivica.errors import StorageError, ValidationError
from vivica.storage.models import PromptTemplate

if TYPE_CHECKING:
    from vivica.storage.store import Store

logger = logging.getLogger(__name__)


def _require(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"Prompt {field_name} is required.")
    return value.strip()


class PromptLibrary:
    """CRUD over the ``prompts`` collection with an in-memory mirror."""

    def __init__(self, store: Store) -> None:
        self._store = store
        self.prompts: list[PromptTemplate] = []

    async def refresh(self) -> None:
        try:
            self.prompts = await self._store.get_prompts()
        except StorageError:
            logger.exception("Failed to load prompts")

    async def add(self, name: str, content: str, tags: list[str] | None = None) -> PromptTemplate | None:
        prompt = PromptTemplate(
            name=_require(name, "name"),
            content=_require(content, "content"),
            tags=list(tags or []),
        )
        try:
            await self._store.put_prompt(prompt)
        except StorageError:
            logger.exception("Failed to save prompt")
            return None
        self.prompts.append(prompt)
        return prompt

    async def update(
        self,
        prompt_id: str,
        *,
        name: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
    ) -> PromptTemplate | None:
        existing = next((p for p in self.prompts if p.id == prompt_id), None)
        if existing is None:
            return None
        changes: dict = {"updated_at": utc_now()}
        if name is not None:
            changes["name"] = _require(name, "name")
        if content is not None:
            changes["content"] = _require(content, "content")
        if tags is not None:
            changes["tags"] = list(tags)
        updated = replace(existing, **changes)
        try:
            await self._store.put_prompt(updated)
        except StorageError:
            logger.exception("Failed to update prompt %s", prompt_id)
            return None
        self.prompts = [updated if p.id == prompt_id else p for p in self.prompts]
        return updated

    async def delete(self, prompt_id: str) -> bool:
        try:
            await self._store.delete_prompt(prompt_id)
        except StorageError:
            logger.exception("Failed to delete prompt %s", prompt_id)
            return False
        self.prompts = [p for p in self.prompts if p.id != prompt_id]
        return True
