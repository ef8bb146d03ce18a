"""JSON file storage.

All records are stored in flat JSON files under a configurable base
directory. There is no database or ORM; reads and writes go through plain
helper methods that load and dump JSON, and every record is validated through
its pydantic model on the way in and out.

Directory layout:

    {base}/
      characters.json          list of Character records
      worlds.json              list of World records
      sessions.json            list of ChatSession records
      memories.json            list of MemoryEntry records
      messages/
        {session_id}.json      append-only Message stream for one session
      config.json              app settings (see rpg_chat.config)

Deleting a world clears world_id on characters and memories that point at
it. Deleting a character removes its sessions, their messages and the
memories pinned to it. Any I/O or decoding failure is raised as
PersistenceError.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from rpg_chat.models import (
    Character,
    ChatSession,
    MemoryEntry,
    Message,
    World,
    utc_now,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class PersistenceError(RuntimeError):
    """Raised when a store operation fails."""


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._messages_root = base_path / "messages"
        try:
            self._messages_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot initialise storage at {base_path}: {e}") from e

    @property
    def base_path(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except PersistenceError:
            raise
        except (OSError, ValueError) as e:
            # ValueError covers json.JSONDecodeError and pydantic.ValidationError
            logger.warning("storage %s failed: %s", action, e)
            raise PersistenceError(f"Failed to {action}: {e}") from e

    def _path(self, name: str) -> Path:
        return self._base / f"{name}.json"

    def _messages_path(self, session_id: str) -> Path:
        return self._messages_root / f"{session_id}.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2))

    def _load(self, name: str, model: type[M]) -> list[M]:
        path = self._path(name)
        if not path.is_file():
            return []
        return [model.model_validate(r) for r in self._read_json(path)]

    def _dump(self, name: str, records: list[BaseModel]) -> None:
        self._write_json(self._path(name), [r.model_dump() for r in records])

    def _upsert(self, name: str, model: type[M], record: M) -> M:
        """Insert or replace a record by id."""
        records = self._load(name, model)
        for i, r in enumerate(records):
            if r.id == record.id:
                records[i] = record
                break
        else:
            records.append(record)
        self._dump(name, records)
        return record

    def _find(self, name: str, model: type[M], record_id: str) -> M | None:
        for r in self._load(name, model):
            if r.id == record_id:
                return r
        return None

    def _patch(self, name: str, model: type[M], record_id: str, fields: dict[str, Any]) -> M | None:
        """Merge fields into a stored record, revalidate and save it."""
        current = self._find(name, model, record_id)
        if current is None:
            return None
        data = current.model_dump()
        data.update({k: v for k, v in fields.items() if k not in ("id", "created_at")})
        if "updated_at" in model.model_fields:
            data["updated_at"] = utc_now()
        return self._upsert(name, model, model.model_validate(data))

    def _remove(self, name: str, model: type[M], record_id: str) -> bool:
        records = self._load(name, model)
        kept = [r for r in records if r.id != record_id]
        if len(kept) == len(records):
            return False
        self._dump(name, kept)
        return True

    # ------------------------------------------------------------------
    # Worlds
    # ------------------------------------------------------------------

    def list_worlds(self, user_id: str) -> list[World]:
        with self._guard("list worlds"):
            worlds = [w for w in self._load("worlds", World) if w.user_id == user_id]
        return sorted(worlds, key=lambda w: w.created_at, reverse=True)

    def get_world(self, world_id: str) -> World | None:
        with self._guard("read world"):
            return self._find("worlds", World, world_id)

    def create_world(self, world: World) -> World:
        with self._guard("create world"):
            return self._upsert("worlds", World, world)

    def update_world(self, world_id: str, fields: dict[str, Any]) -> World | None:
        with self._guard("update world"):
            return self._patch("worlds", World, world_id, fields)

    def delete_world(self, world_id: str) -> bool:
        """Delete a world. References to it are cleared, never cascaded."""
        with self._guard("delete world"):
            if not self._remove("worlds", World, world_id):
                return False
            chars = self._load("characters", Character)
            for c in chars:
                if c.world_id == world_id:
                    c.world_id = None
            self._dump("characters", chars)
            memories = self._load("memories", MemoryEntry)
            for m in memories:
                if m.world_id == world_id:
                    m.world_id = None
            self._dump("memories", memories)
            return True

    # ------------------------------------------------------------------
    # Characters
    # ------------------------------------------------------------------

    def list_characters(self, user_id: str) -> list[Character]:
        with self._guard("list characters"):
            chars = [c for c in self._load("characters", Character) if c.user_id == user_id]
        return sorted(chars, key=lambda c: c.created_at, reverse=True)

    def get_character(self, character_id: str) -> Character | None:
        with self._guard("read character"):
            return self._find("characters", Character, character_id)

    def create_character(self, character: Character) -> Character:
        with self._guard("create character"):
            return self._upsert("characters", Character, character)

    def update_character(self, character_id: str, fields: dict[str, Any]) -> Character | None:
        with self._guard("update character"):
            return self._patch("characters", Character, character_id, fields)

    def delete_character(self, character_id: str) -> bool:
        """Delete a character with its sessions, messages and memories."""
        with self._guard("delete character"):
            if not self._remove("characters", Character, character_id):
                return False
            sessions = self._load("sessions", ChatSession)
            for s in sessions:
                if s.character_id == character_id:
                    self._messages_path(s.id).unlink(missing_ok=True)
            self._dump("sessions", [s for s in sessions if s.character_id != character_id])
            memories = self._load("memories", MemoryEntry)
            self._dump("memories", [m for m in memories if m.character_id != character_id])
            return True

    # ------------------------------------------------------------------
    # Chat sessions
    # ------------------------------------------------------------------

    def list_sessions(self, character_id: str) -> list[ChatSession]:
        """Sessions for a character, most recently updated first."""
        with self._guard("list sessions"):
            sessions = [
                s for s in self._load("sessions", ChatSession)
                if s.character_id == character_id
            ]
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)

    def get_session(self, session_id: str) -> ChatSession | None:
        with self._guard("read session"):
            return self._find("sessions", ChatSession, session_id)

    def create_session(self, session: ChatSession) -> ChatSession:
        with self._guard("create session"):
            return self._upsert("sessions", ChatSession, session)

    def update_session(self, session_id: str, fields: dict[str, Any]) -> ChatSession:
        """Patch a session. Raises PersistenceError if it no longer exists."""
        with self._guard("update session"):
            updated = self._patch("sessions", ChatSession, session_id, fields)
        if updated is None:
            raise PersistenceError(f"Session {session_id} not found")
        return updated

    def delete_session(self, session_id: str) -> bool:
        with self._guard("delete session"):
            if not self._remove("sessions", ChatSession, session_id):
                return False
            self._messages_path(session_id).unlink(missing_ok=True)
            return True

    # ------------------------------------------------------------------
    # Messages (append-only)
    # ------------------------------------------------------------------

    def get_messages(self, session_id: str) -> list[Message]:
        """Messages for a session in creation order."""
        with self._guard("read messages"):
            path = self._messages_path(session_id)
            if not path.is_file():
                return []
            return [Message.model_validate(m) for m in self._read_json(path)]

    def append_message(self, message: Message) -> Message:
        with self._guard("save message"):
            if self._find("sessions", ChatSession, message.session_id) is None:
                raise PersistenceError(f"Session {message.session_id} not found")
            existing = self.get_messages(message.session_id)
            existing.append(message)
            self._write_json(
                self._messages_path(message.session_id),
                [m.model_dump() for m in existing],
            )
            self._patch("sessions", ChatSession, message.session_id, {})  # bump updated_at
            return message

    # ------------------------------------------------------------------
    # Memories (append/delete only)
    # ------------------------------------------------------------------

    def list_memories(
        self, character_id: str | None = None, world_id: str | None = None
    ) -> list[MemoryEntry]:
        """Pinned memories matching every given key, newest first."""
        with self._guard("list memories"):
            memories = [m for m in self._load("memories", MemoryEntry) if m.is_pinned]
        if character_id:
            memories = [m for m in memories if m.character_id == character_id]
        if world_id:
            memories = [m for m in memories if m.world_id == world_id]
        return sorted(memories, key=lambda m: m.created_at, reverse=True)

    def get_memory(self, memory_id: str) -> MemoryEntry | None:
        with self._guard("read memory"):
            return self._find("memories", MemoryEntry, memory_id)

    def create_memory(self, memory: MemoryEntry) -> MemoryEntry:
        with self._guard("create memory"):
            return self._upsert("memories", MemoryEntry, memory)

    def delete_memory(self, memory_id: str) -> bool:
        with self._guard("delete memory"):
            return self._remove("memories", MemoryEntry, memory_id)
