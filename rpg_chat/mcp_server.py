"""FastMCP server exposing dice, RPG commands and memories as MCP tools.

Tools:
  - roll_dice(notation)                 — roll dice notation like "2d6+3"
  - apply_rpg_commands(state, text)     — run command tokens against a state
  - list_memories(character_id)         — pinned memories for a character
  - pin_memory(character_id, content)   — pin a new memory to a character

Memory tools read and write the same JSON storage as the web app. The store
is replaced via set_storage() for tests, or opened from $DATA_DIR (default
./data) when run as __main__.

Usage:
    uv run python -m rpg_chat.mcp_server
"""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from rpg_chat import dice, rpg
from rpg_chat.models import MemoryEntry, RPGState
from rpg_chat.storage import Storage

mcp = FastMCP("rpg-chat")

_storage: Storage | None = None


def set_storage(storage: Storage) -> None:
    """Replace the active store (used in tests)."""
    global _storage
    _storage = storage


def _active_storage() -> Storage:
    assert _storage is not None, "Call set_storage() before using memory tools"
    return _storage


@mcp.tool()
def roll_dice(notation: str) -> dict:
    """Roll dice notation such as "1d20" or "2d6+3"."""
    return dice.roll(notation).model_dump()


@mcp.tool()
def apply_rpg_commands(state: dict, text: str) -> dict:
    """Apply [DICE], [STAT_CHANGE] and [ITEM] tokens in text to an RPG state.

    Returns {"state": <new state>, "changed": bool, "events": [...]}.
    """
    result = rpg.apply_commands(RPGState.model_validate(state), text)
    return {
        "state": result.new_state.model_dump(),
        "changed": result.changed,
        "events": [e.model_dump() for e in result.events],
    }


@mcp.tool()
def list_memories(character_id: str) -> list[str]:
    """Return the pinned memories for a character."""
    storage = _active_storage()
    character = storage.get_character(character_id)
    if character is None:
        return []
    return [m.content for m in storage.list_memories(character.id, character.world_id)]


@mcp.tool()
def pin_memory(character_id: str, content: str) -> dict:
    """Pin a memory to a character and its world. Returns the stored entry."""
    content = content.strip()
    if not content:
        return {"error": "Memory is empty"}
    storage = _active_storage()
    character = storage.get_character(character_id)
    if character is None:
        return {"error": f"Character {character_id} not found"}
    entry = storage.create_memory(MemoryEntry(
        user_id=character.user_id,
        character_id=character.id,
        world_id=character.world_id,
        content=content,
    ))
    return entry.model_dump()


if __name__ == "__main__":
    import os
    from pathlib import Path

    set_storage(Storage(Path(os.getenv("DATA_DIR", "data"))))
    mcp.run()
