"""Vivica terminal entry point.

Usage:
    python -m vivica.main
    python -m vivica.main --db data/other.db --profile work
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from vivica.chat.controller import ConversationController
from vivica.config import settings
from vivica.errors import ValidationError
from vivica.llm.models import friendly
from vivica.llm.profiles import get_effective_settings, load_chat_config
from vivica.memory.engine import MemoryEngine
from vivica.storage.store import Store

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)

HELP = """Commands:
  /new            start a new conversation
  /retry          retry the last failed reply
  /list           list conversations
  /open <id>      switch to a conversation
  /delete <id>    delete a conversation
  /memories       show memories, pinned first
  /pin <id>       pin a memory
  /unpin <id>     unpin a memory
  /forget <id>    delete a memory
  /quit           exit"""


def _print_reply(controller: ConversationController) -> None:
    if controller.current and controller.current.messages:
        last = controller.current.messages[-1]
        prefix = "!" if last.error else "vivica"
        print(f"{prefix}> {last.content}")


async def _handle_command(
    line: str, controller: ConversationController, memory: MemoryEngine
) -> bool:
    """Run one slash command. Returns False when the loop should stop."""
    command, _, arg = line.partition(" ")
    arg = arg.strip()

    if command == "/quit":
        return False
    if command == "/new":
        await controller.new_conversation()
        print("Started a new conversation.")
    elif command == "/retry":
        if await controller.retry_message():
            _print_reply(controller)
        else:
            print("Nothing to retry.")
    elif command == "/list":
        for c in controller.conversations:
            marker = "*" if controller.current and controller.current.id == c.id else " "
            print(f"{marker} {c.id}  {c.title}  ({len(c.messages)} messages)")
    elif command == "/open":
        if not await controller.load_conversation(arg):
            print(f"No conversation {arg!r}.")
    elif command == "/delete":
        await controller.delete_conversation(arg)
    elif command == "/memories":
        for m in memory.curated():
            pin = "*" if m.is_pinned else " "
            print(f"{pin} {m.id}  [{m.category}/{m.importance}] {m.content}")
    elif command in ("/pin", "/unpin"):
        action = memory.pin if command == "/pin" else memory.unpin
        if await action(arg) is None:
            print(f"No memory {arg!r}.")
    elif command == "/forget":
        await memory.delete(arg)
    else:
        print(HELP)
    return True


async def run(db_path: Path | None, config_path: Path, profile: str | None) -> None:
    store = Store(db_path=db_path)
    memory = MemoryEngine(store)
    config = load_chat_config(config_path)
    if profile:
        config = config.model_copy(update={"active_profile_id": profile})

    controller = ConversationController(store, memory, config)
    await memory.refresh()
    restored = await controller.restore_active()

    effective = get_effective_settings(config)
    logger.info("Starting Vivica with model %s", friendly(effective.model, config))
    if restored:
        print(f"Resumed conversation: {restored.title}")
    print("Type a message, or /help for commands.")

    while True:
        try:
            line = (await asyncio.to_thread(input, "you> ")).strip()
        except EOFError:
            break
        if not line:
            continue
        if line.startswith("/"):
            try:
                if not await _handle_command(line, controller, memory):
                    break
            except ValidationError as exc:
                print(f"Invalid input: {exc}")
            continue
        if await controller.send_message(line):
            _print_reply(controller)

    await controller.wait_for_background()


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat with Vivica from the terminal.")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path")
    parser.add_argument(
        "--config",
        type=Path,
        default=settings.chat_config_path,
        help="Profiles/models JSON file",
    )
    parser.add_argument("--profile", default=None, help="Active profile id (default: global)")
    args = parser.parse_args()

    try:
        asyncio.run(run(args.db, args.config, args.profile))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
