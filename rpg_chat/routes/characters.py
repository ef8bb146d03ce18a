"""Character CRUD endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from rpg_chat.models import Character, RPGStats
from rpg_chat.storage import Storage

from .deps import get_storage, get_user_id, owned
from .models import CreateCharacter, UpdateCharacter

router = APIRouter()


def _check_world(storage: Storage, world_id: str | None, user_id: str) -> None:
    if world_id is None:
        return
    world = storage.get_world(world_id)
    if world is None or world.user_id != user_id:
        raise HTTPException(400, "Unknown world")


@router.get("/characters")
async def list_characters(
    user_id: str = Depends(get_user_id), storage: Storage = Depends(get_storage)
):
    """List the caller's characters, newest first."""
    return storage.list_characters(user_id)


@router.post("/characters", status_code=201)
async def create_character(
    body: CreateCharacter,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Create a new character."""
    if not body.name.strip():
        raise HTTPException(400, "Character name is required")
    _check_world(storage, body.world_id, user_id)
    fields = body.model_dump(exclude={"base_stats"})
    char = Character(user_id=user_id, base_stats=body.base_stats or RPGStats(), **fields)
    return storage.create_character(char)


@router.get("/characters/{character_id}")
async def get_character(
    character_id: str,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Get a single character."""
    return owned(storage.get_character(character_id), user_id, "Character")


@router.patch("/characters/{character_id}")
async def update_character(
    character_id: str,
    body: UpdateCharacter,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Update character fields. Existing sessions keep their RPG mode."""
    owned(storage.get_character(character_id), user_id, "Character")
    if body.name is not None and not body.name.strip():
        raise HTTPException(400, "Character name is required")
    fields = body.model_dump(exclude_unset=True)
    if "world_id" in fields:
        _check_world(storage, fields["world_id"], user_id)
    return storage.update_character(character_id, fields)


@router.delete("/characters/{character_id}")
async def delete_character(
    character_id: str,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Delete a character along with its sessions and memories."""
    owned(storage.get_character(character_id), user_id, "Character")
    storage.delete_character(character_id)
    return {"ok": True}
