"""Pydantic request/response models for API endpoints."""

from typing import ClassVar

from pydantic import BaseModel, model_validator

from rpg_chat.models import RPGStats


class PatchBody(BaseModel):
    """Partial update. Fields in REQUIRED may be left out but not sent as null."""

    REQUIRED: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_nulls(self):
        for name in self.REQUIRED:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class CreateWorld(BaseModel):
    name: str
    description: str | None = None
    lore: str | None = None
    rules: str | None = None


class UpdateWorld(PatchBody):
    REQUIRED: ClassVar[tuple[str, ...]] = ("name",)

    name: str | None = None
    description: str | None = None
    lore: str | None = None
    rules: str | None = None


class CreateCharacter(BaseModel):
    name: str
    world_id: str | None = None
    avatar_url: str | None = None
    description: str | None = None
    personality: str | None = None
    backstory: str | None = None
    speaking_style: str | None = None
    rules: str | None = None
    example_messages: str | None = None
    is_rpg_enabled: bool = False
    base_stats: RPGStats | None = None


class UpdateCharacter(PatchBody):
    REQUIRED: ClassVar[tuple[str, ...]] = ("name", "is_rpg_enabled", "base_stats")

    name: str | None = None
    world_id: str | None = None
    avatar_url: str | None = None
    description: str | None = None
    personality: str | None = None
    backstory: str | None = None
    speaking_style: str | None = None
    rules: str | None = None
    example_messages: str | None = None
    is_rpg_enabled: bool | None = None
    base_stats: RPGStats | None = None


class CreateSession(BaseModel):
    title: str | None = None


class SendBody(BaseModel):
    message: str
    safe_mode: bool | None = None


class RollBody(BaseModel):
    notation: str


class CreateMemory(BaseModel):
    content: str
    category: str = "general"


class UpdateSettings(BaseModel):
    gateway_url: str | None = None
    model: str | None = None
    safe_mode: bool | None = None
    history_limit: int | None = None
    timeout: float | None = None
