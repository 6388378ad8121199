"""
CLI entry point.

Commands:
- init: Create the data directory and database schema
- chat <user_id> [session_id]: Interactive chat backed by the memory system
- rebuild <session_id>: Rebuild a session's cached system prompt
- prompt <session_id> <user_id>: Print the system prompt the next turn would use
- stats <session_id> <user_id>: Show memory statistics for a session
- health: Check LLM provider connectivity

Flags:
- --debug: Enable debug logging to file
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from uuid import uuid4

from memoria.core.config import Settings, get_settings
from memoria.core.logging import get_logger, setup_logging
from memoria.core.types import ContentType, Message

USAGE = {
    "init": "init",
    "chat": "chat <user_id> [session_id]",
    "rebuild": "rebuild <session_id>",
    "prompt": "prompt <session_id> <user_id>",
    "stats": "stats <session_id> <user_id>",
    "health": "health",
}


def main() -> int:
    """Main entry point."""
    settings = get_settings()

    debug_mode = "--debug" in sys.argv
    if debug_mode:
        sys.argv.remove("--debug")

    log_level = logging.DEBUG if debug_mode else logging.INFO
    log_file = settings.data_dir / "memoria.log"
    setup_logging(level=log_level, log_file=log_file)
    logger = get_logger("cli")

    logger.info(f"Logging to {log_file}" + (" (debug mode)" if debug_mode else ""))

    if len(sys.argv) < 2:
        print("Usage: memoria [--debug] <command>")
        print("Commands: " + ", ".join(USAGE.values()))
        print("Flags: --debug (enable debug logging to data/memoria.log)")
        return 1

    command, args = sys.argv[1], sys.argv[2:]

    if command not in USAGE:
        print(f"Unknown command: {command}")
        return 1

    if command == "init":
        return asyncio.run(_init(settings))

    if command == "health":
        return asyncio.run(_health_check(settings))

    required = {"chat": 1, "rebuild": 1, "prompt": 2, "stats": 2}[command]
    if len(args) < required:
        print(f"Usage: memoria {USAGE[command]}")
        return 1

    if command == "chat":
        logger.info("Starting CLI chat mode")
        return asyncio.run(_chat_loop(settings, args[0], args[1] if len(args) > 1 else None))

    if command == "rebuild":
        return asyncio.run(_rebuild(settings, args[0]))

    if command == "prompt":
        return asyncio.run(_show_prompt(settings, args[0], args[1]))

    return asyncio.run(_show_stats(settings, args[0], args[1]))


async def _open_manager(settings: Settings):
    from memoria.memory.manager import MemoryManager
    from memoria.memory.store import SQLiteMemoryStore

    store = SQLiteMemoryStore(settings.db_path)
    await store.connect()
    return store, MemoryManager.from_settings(store, settings)


async def _init(settings: Settings) -> int:
    """Create the data directory and database."""
    from memoria.memory.store import SQLiteMemoryStore

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    store = SQLiteMemoryStore(settings.db_path)
    await store.connect()
    await store.close()
    get_logger("cli").info(f"Initialized database: {settings.db_path}")
    print(f"Created: {settings.db_path}")
    return 0


async def _rebuild(settings: Settings, session_id: str) -> int:
    """Run the rebuild endpoint once and print its payload."""
    from memoria.interfaces.rebuild import RebuildEndpoint

    store, manager = await _open_manager(settings)
    try:
        payload = await RebuildEndpoint(manager).handle({"sessionId": session_id})
    finally:
        await store.close()

    print(json.dumps(payload, indent=2))
    return 0 if payload.get("success") else 1


async def _show_prompt(settings: Settings, session_id: str, user_id: str) -> int:
    store, manager = await _open_manager(settings)
    try:
        print(await manager.get_prompt(session_id, user_id))
    finally:
        await store.close()
    return 0


async def _show_stats(settings: Settings, session_id: str, user_id: str) -> int:
    store, manager = await _open_manager(settings)
    try:
        stats = await manager.get_stats(session_id, user_id)
        needs_update, reasons = await manager.should_update(session_id, user_id)
    finally:
        await store.close()

    print(f"Session:          {session_id}")
    print(f"STM turns:        {stats.stm_count}/{settings.max_stm_entries}")
    print(f"Importance items: {stats.importance_count}")
    if stats.has_prompt_cache:
        print(f"Prompt cache:     updated {stats.last_prompt_update:%Y-%m-%d %H:%M:%S}")
        print(f"Cache age:        {stats.cache_age_minutes:.1f} min" + (" (stale)" if stats.is_stale else ""))
    else:
        print("Prompt cache:     none")
    if needs_update:
        print("Needs rebuild:")
        for reason in reasons:
            print(f"  - {reason}")
    return 0


async def _chat_loop(settings: Settings, user_id: str, session_id: str | None) -> int:
    """Interactive CLI chat with the dialog agent."""
    from memoria.agents.dialog import DialogAgent
    from memoria.llm.litellm_adapter import LiteLLMProvider

    store, manager = await _open_manager(settings)
    llm = LiteLLMProvider.from_settings(settings)
    agent = DialogAgent(
        llm=llm,
        memory=manager,
        user_id=user_id,
        session_id=session_id,
        history_turns=settings.history_turns,
    )

    print("Memoria CLI Chat")
    print(f"User: {user_id}  Session: {agent.session_id}")
    print("Commands: /clear, /status, /prompt, /exit")
    print("-" * 40)

    try:
        while True:
            try:
                user_input = input("> ").strip()
            except EOFError:
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "exit", "quit", "q"):
                break
            if user_input == "/clear":
                removed = await manager.clear_session(agent.session_id)
                print(f"Cleared {removed} turns.\n")
                continue
            if user_input == "/status":
                stats = await manager.get_stats(agent.session_id, user_id)
                print(f"STM turns: {stats.stm_count}, importance items: {stats.importance_count}")
                print(f"Agent state: {agent.state.value}\n")
                continue
            if user_input == "/prompt":
                print(await manager.get_prompt(agent.session_id, user_id) + "\n")
                continue

            message = Message(
                id=str(uuid4()),
                timestamp=datetime.now(),
                role="user",
                content=user_input,
                content_type=ContentType.TEXT,
            )

            try:
                response = await agent.process(message)
                print(f"\n{response.content}")
                print(f"  [{response.metadata.get('model', '?')} turn {response.metadata['turn_number']}]\n")
            except Exception as e:
                print(f"Error: {e}\n")

    except KeyboardInterrupt:
        print("\n\nShutting down...")
    finally:
        try:
            if await manager.get_recent_turns(agent.session_id, 2):
                print("Saving conversation summary...")
                await agent.summarize_session()
        except Exception as e:
            print(f"Warning: Failed to save summary: {e}")

        await store.close()

    print("Goodbye!")
    return 0


async def _health_check(settings: Settings) -> int:
    """Check LLM provider health."""
    from memoria.llm.litellm_adapter import LiteLLMProvider

    print(f"Checking {settings.default_model}...")
    if await LiteLLMProvider.from_settings(settings).health_check():
        print("  OK")
        return 0
    print("  unavailable")
    return 1


if __name__ == "__main__":
    sys.exit(main())
