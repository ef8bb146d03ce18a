"""Core domain models.

Storage, the RPG state machine and the chat controller all operate on these
types. Pydantic is used for validation and serialisation at every data
boundary, so records read back from disk are checked rather than trusted.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

MessageRole = Literal["user", "assistant", "system"]

RPG_STATE_VERSION = 1


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Record(BaseModel):
    """Base for persisted entities. Unknown fields in stored JSON are dropped."""

    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Characters and worlds
# ---------------------------------------------------------------------------

class RPGStats(Record):
    hp: int = 100
    max_hp: int = 100
    strength: int = 10
    dexterity: int = 10
    intelligence: int = 10
    charisma: int = 10


class World(Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    name: str
    description: str | None = None
    lore: str | None = None
    rules: str | None = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class Character(Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    world_id: str | None = None  # soft reference, nulled when the world goes
    name: str
    avatar_url: str | None = None
    description: str | None = None
    personality: str | None = None
    backstory: str | None = None
    speaking_style: str | None = None
    rules: str | None = None
    example_messages: str | None = None
    is_rpg_enabled: bool = False
    base_stats: RPGStats = Field(default_factory=RPGStats)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Sessions and messages
# ---------------------------------------------------------------------------

class RPGState(Record):
    """Mutable per-session RPG state. hp is always kept within [0, max_hp]."""

    version: int = RPG_STATE_VERSION
    hp: int = 100
    max_hp: int = 100
    inventory: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    status_effects: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _clamp_hp(self) -> RPGState:
        if self.max_hp < 0:
            self.max_hp = 0
        self.hp = max(0, min(self.max_hp, self.hp))
        return self


class DiceResult(BaseModel):
    dice: str
    rolls: list[int] = Field(default_factory=list)
    total: int = 0


class ChatSession(Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    character_id: str
    title: str | None = None
    is_rpg_mode: bool = False  # fixed at creation from the character
    rpg_state: RPGState = Field(default_factory=RPGState)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class Message(Record):
    """A single entry in a session's append-only transcript."""

    id: str = Field(default_factory=new_id)
    session_id: str
    role: MessageRole
    content: str
    is_dice_roll: bool = False
    dice_result: DiceResult | None = None
    created_at: str = Field(default_factory=utc_now)


class MemoryEntry(Record):
    """A fact pinned to a character and/or world, injected into prompts."""

    id: str = Field(default_factory=new_id)
    user_id: str
    character_id: str | None = None
    world_id: str | None = None
    content: str
    category: str = "general"
    is_pinned: bool = True
    created_at: str = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# RPG events (state machine output, never persisted)
# ---------------------------------------------------------------------------

class DiceRolled(BaseModel):
    kind: Literal["dice_rolled"] = "dice_rolled"
    result: DiceResult

    def describe(self) -> str:
        rolls = " + ".join(str(r) for r in self.result.rolls)
        return f"🎲 Rolled {self.result.dice}: {rolls} = {self.result.total}"


class HpChanged(BaseModel):
    kind: Literal["hp_changed"] = "hp_changed"
    delta: int  # clamped delta actually applied
    hp: int
    max_hp: int

    def describe(self) -> str:
        if self.delta > 0:
            return f"❤️ Healed {self.delta} HP"
        if self.delta < 0:
            return f"💔 Took {abs(self.delta)} damage"
        return f"HP unchanged ({self.hp}/{self.max_hp})"


class ItemGained(BaseModel):
    kind: Literal["item_gained"] = "item_gained"
    item: str

    def describe(self) -> str:
        return f"📦 Acquired: {self.item}"


class ItemLost(BaseModel):
    kind: Literal["item_lost"] = "item_lost"
    item: str
    count: int = 1  # entries actually removed

    def describe(self) -> str:
        return f"📦 Lost: {self.item}"


RpgEvent = Union[DiceRolled, HpChanged, ItemGained, ItemLost]


# ---------------------------------------------------------------------------
# Completion requests
# ---------------------------------------------------------------------------

class ChatTurn(BaseModel):
    role: MessageRole
    content: str


class CharacterProfile(BaseModel):
    name: str
    description: str = ""
    personality: str = ""
    backstory: str = ""
    speaking_style: str = ""
    rules: str = ""

    @classmethod
    def from_character(cls, character: Character) -> CharacterProfile:
        return cls(
            name=character.name,
            description=character.description or "",
            personality=character.personality or "",
            backstory=character.backstory or "",
            speaking_style=character.speaking_style or "",
            rules=character.rules or "",
        )


class WorldProfile(BaseModel):
    name: str
    description: str = ""
    lore: str = ""
    rules: str = ""

    @classmethod
    def from_world(cls, world: World) -> WorldProfile:
        return cls(
            name=world.name,
            description=world.description or "",
            lore=world.lore or "",
            rules=world.rules or "",
        )


class ChatRequest(BaseModel):
    """Body of a chat completion request. Accepts camelCase keys as well."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    messages: list[ChatTurn]
    character: CharacterProfile
    world: WorldProfile | None = None
    memories: list[str] = Field(default_factory=list)
    is_rpg_mode: bool = Field(False, alias="isRpgMode")
    rpg_state: RPGState | None = Field(None, alias="rpgState")
    safe_mode: bool = Field(True, alias="safeMode")
