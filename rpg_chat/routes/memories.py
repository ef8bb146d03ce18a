"""Memory endpoints. Memories are pinned facts; they can be added and removed, never edited."""

from fastapi import APIRouter, Depends, HTTPException

from rpg_chat.models import MemoryEntry
from rpg_chat.storage import Storage

from .deps import get_storage, get_user_id, owned
from .models import CreateMemory

router = APIRouter()


@router.get("/characters/{character_id}/memories")
async def list_memories(
    character_id: str,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Pinned memories injected into this character's prompts."""
    character = owned(storage.get_character(character_id), user_id, "Character")
    return storage.list_memories(character.id, character.world_id)


@router.post("/characters/{character_id}/memories", status_code=201)
async def create_memory(
    character_id: str,
    body: CreateMemory,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Pin a memory to a character and its world."""
    character = owned(storage.get_character(character_id), user_id, "Character")
    content = body.content.strip()
    if not content:
        raise HTTPException(400, "Memory is empty")
    return storage.create_memory(MemoryEntry(
        user_id=user_id,
        character_id=character.id,
        world_id=character.world_id,
        content=content,
        category=body.category,
    ))


@router.delete("/memories/{memory_id}")
async def delete_memory(
    memory_id: str,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    owned(storage.get_memory(memory_id), user_id, "Memory")
    storage.delete_memory(memory_id)
    return {"ok": True}
