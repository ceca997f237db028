"""Conversation controller: the active conversation and the request pipeline.

One conversation is active at a time.  ``send_message`` appends the user's
turn, persists it before any network call, then runs the pipeline:

    resolve settings → build system prompt with memories → call the API
    → append the assistant turn (or an error turn) → persist

Each user turn gets exactly one assistant turn.  Failures become an
assistant message flagged ``error=True`` that ``retry_message`` can replace.
A second send while a conversation is SENDING is rejected, not queued.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from vivica.chat.models import Conversation, Message, RequestStatus
from vivica.config import settings
from vivica.errors import RemoteRequestError, StorageError
from vivica.llm.client import complete_chat
from vivica.llm.profiles import get_effective_settings
from vivica.llm.prompt import build_system_prompt
from vivica.memory.extractor import UNTAGGED_PROFILES, extract_and_save

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from vivica.llm.profiles import ChatConfig, EffectiveSettings
    from vivica.memory.engine import MemoryEngine
    from vivica.storage.store import Store

    CompleteFn = Callable[..., Awaitable[str]]

logger = logging.getLogger(__name__)

ACTIVE_CONVERSATION_KEY = "active_conversation_id"
ERROR_PREFIX = "Sorry, I encountered an error: "


class ConversationController:
    """Owns the conversation list, the active conversation, and sending."""

    def __init__(
        self,
        store: Store,
        memory: MemoryEngine,
        config: ChatConfig,
        *,
        complete: CompleteFn = complete_chat,
        memory_limit: int | None = None,
        memory_token_budget: int | None = None,
    ) -> None:
        self._store = store
        self._memory = memory
        self.config = config
        self._complete = complete
        self._memory_limit = (
            settings.memory_context_limit if memory_limit is None else memory_limit
        )
        self._token_budget = (
            settings.memory_token_budget if memory_token_budget is None else memory_token_budget
        )
        self.conversations: list[Conversation] = []
        self.current: Conversation | None = None
        self._status: dict[str, RequestStatus] = {}
        self._in_flight: dict[str, Conversation] = {}
        self._deleted: set[str] = set()
        self._background: set[asyncio.Task] = set()

    # -- State -----------------------------------------------------------------

    def status(self, conversation_id: str) -> RequestStatus:
        return self._status.get(conversation_id, RequestStatus.IDLE)

    @property
    def is_typing(self) -> bool:
        """True while the active conversation is waiting for a reply."""
        return self.current is not None and self.status(self.current.id) is RequestStatus.SENDING

    # -- Loading ---------------------------------------------------------------

    async def refresh_conversations(self) -> None:
        """Reload the conversation list from the store, newest first."""
        try:
            loaded = await self._store.get_conversations()
        except StorageError:
            logger.exception("Failed to load conversations")
            return
        # Pending and active conversations may be ahead of their stored rows.
        live = dict(self._in_flight)
        if self.current is not None:
            live[self.current.id] = self.current
        merged = [live.pop(c.id, c) for c in loaded]
        self.conversations = [*live.values(), *merged]

    async def restore_active(self) -> Conversation | None:
        """Reload the list and reopen the conversation active in the last session."""
        await self.refresh_conversations()
        try:
            active_id = await self._store.get_setting(ACTIVE_CONVERSATION_KEY)
        except StorageError:
            logger.exception("Failed to read active conversation id")
            return None
        if not active_id:
            return None
        conversation = self._find(active_id)
        if conversation is None:
            logger.info("Active conversation %s no longer exists", active_id)
            await self._set_active(None)
            return None
        self.current = conversation
        return conversation

    async def load_conversation(self, conversation_id: str) -> bool:
        """Make a conversation from the list active. Returns False if unknown."""
        conversation = self._find(conversation_id)
        if conversation is None:
            return False
        await self._set_active(conversation)
        return True

    async def new_conversation(self) -> None:
        """Clear the active pointer. The next send creates a conversation."""
        await self._set_active(None)

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete from the store and the list; clear the active pointer if needed."""
        try:
            await self._store.delete_conversation(conversation_id)
        except StorageError:
            logger.exception("Failed to delete conversation %s", conversation_id)
            return False
        if self._in_flight.pop(conversation_id, None) is not None:
            self._deleted.add(conversation_id)
        self._status.pop(conversation_id, None)
        self.conversations = [c for c in self.conversations if c.id != conversation_id]
        if self.current is not None and self.current.id == conversation_id:
            await self._set_active(None)
        logger.info("Deleted conversation %s", conversation_id)
        return True

    # -- Sending ---------------------------------------------------------------

    async def send_message(self, content: str) -> bool:
        """Append a user message and fetch the reply.

        Returns False without changing anything when *content* is blank or
        the active conversation is already waiting for a reply.
        """
        text = content.strip()
        if not text:
            return False
        if self.is_typing:
            logger.info("Rejected send while a reply is pending")
            return False

        conversation = self.current
        if conversation is None:
            conversation = Conversation()
            self.current = conversation
            self.conversations.insert(0, conversation)

        conversation.append(Message(role="user", content=text))
        self._begin(conversation)

        await self._remember_active(conversation.id)
        await self._persist(conversation)
        await self._fetch_and_process_response(conversation)
        return True

    async def retry_message(self) -> bool:
        """Drop trailing error turns and rerun the pipeline.

        Returns False when there is no active conversation, a reply is
        pending, or the conversation does not end with an unanswered user turn.
        """
        conversation = self.current
        if conversation is None or self.is_typing:
            return False

        conversation.strip_trailing_errors()
        if not conversation.messages or conversation.messages[-1].role != "user":
            return False

        self._begin(conversation)
        await self._persist(conversation)
        await self._fetch_and_process_response(conversation)
        return True

    async def wait_for_background(self) -> None:
        """Wait for pending memory-extraction tasks."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # -- Pipeline --------------------------------------------------------------

    def _build_request(
        self, conversation: Conversation, effective: EffectiveSettings
    ) -> list[dict[str, str]]:
        memories = self._memory.relevant_memories(self._memory_limit)
        system_prompt = build_system_prompt(effective.system_prompt, memories, self._token_budget)
        return [{"role": "system", "content": system_prompt}, *conversation.to_api_messages()]

    async def _fetch_and_process_response(self, conversation: Conversation) -> None:
        try:
            effective = get_effective_settings(self.config)
            messages = self._build_request(conversation, effective)
            reply = await self._complete(
                messages,
                model=effective.model,
                temperature=effective.temperature,
            )
            if not reply:
                raise RemoteRequestError("No response content received from API")
        except RemoteRequestError as exc:
            logger.warning("Chat request failed: %s", exc)
            await self._apply_error(conversation, str(exc))
            return
        except Exception as exc:
            logger.exception("Chat error")
            await self._apply_error(conversation, str(exc) or type(exc).__name__)
            return

        if not self._finish(conversation):
            return
        user_message = conversation.last_user_message
        conversation.append(Message(role="assistant", content=reply))
        self._status[conversation.id] = RequestStatus.IDLE
        await self._persist(conversation)
        await self.refresh_conversations()

        if user_message is not None:
            self._schedule_extraction(user_message.content, reply)

    async def _apply_error(self, conversation: Conversation, reason: str) -> None:
        if not self._finish(conversation):
            return
        conversation.append(Message(role="assistant", content=ERROR_PREFIX + reason, error=True))
        self._status[conversation.id] = RequestStatus.ERROR
        await self._persist(conversation)

    def _schedule_extraction(self, user_text: str, assistant_text: str) -> None:
        profile_id = self.config.active_profile_id
        if profile_id in UNTAGGED_PROFILES:
            profile_id = None
        task = asyncio.create_task(
            extract_and_save(self._memory, user_text, assistant_text, profile_id)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # -- Helpers ---------------------------------------------------------------

    def _begin(self, conversation: Conversation) -> None:
        self._status[conversation.id] = RequestStatus.SENDING
        self._in_flight[conversation.id] = conversation

    def _finish(self, conversation: Conversation) -> bool:
        """Release the pending slot. Returns False if the conversation was deleted meanwhile."""
        self._in_flight.pop(conversation.id, None)
        if conversation.id in self._deleted:
            self._deleted.discard(conversation.id)
            logger.info("Dropped reply for deleted conversation %s", conversation.id)
            return False
        return True

    def _find(self, conversation_id: str) -> Conversation | None:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    async def _persist(self, conversation: Conversation) -> None:
        if conversation.id in self._deleted:
            return
        try:
            await self._store.put_conversation(conversation)
        except StorageError:
            logger.exception("Failed to save conversation %s", conversation.id)

    async def _set_active(self, conversation: Conversation | None) -> None:
        self.current = conversation
        if conversation is None:
            try:
                await self._store.delete_setting(ACTIVE_CONVERSATION_KEY)
            except StorageError:
                logger.exception("Failed to clear active conversation id")
        else:
            await self._remember_active(conversation.id)

    async def _remember_active(self, conversation_id: str) -> None:
        try:
            await self._store.set_setting(ACTIVE_CONVERSATION_KEY, conversation_id)
        except StorageError:
            logger.exception("Failed to save active conversation id")
