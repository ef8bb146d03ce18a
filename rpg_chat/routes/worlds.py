"""World CRUD endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from rpg_chat.models import World
from rpg_chat.storage import Storage

from .deps import get_storage, get_user_id, owned
from .models import CreateWorld, UpdateWorld

router = APIRouter()


@router.get("/worlds")
async def list_worlds(
    user_id: str = Depends(get_user_id), storage: Storage = Depends(get_storage)
):
    """List the caller's worlds, newest first."""
    return storage.list_worlds(user_id)


@router.post("/worlds", status_code=201)
async def create_world(
    body: CreateWorld,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Create a new world."""
    if not body.name.strip():
        raise HTTPException(400, "World name is required")
    return storage.create_world(World(user_id=user_id, **body.model_dump()))


@router.get("/worlds/{world_id}")
async def get_world(
    world_id: str,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Get a single world."""
    return owned(storage.get_world(world_id), user_id, "World")


@router.patch("/worlds/{world_id}")
async def update_world(
    world_id: str,
    body: UpdateWorld,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Update world fields."""
    owned(storage.get_world(world_id), user_id, "World")
    if body.name is not None and not body.name.strip():
        raise HTTPException(400, "World name is required")
    return storage.update_world(world_id, body.model_dump(exclude_unset=True))


@router.delete("/worlds/{world_id}")
async def delete_world(
    world_id: str,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Delete a world. Characters set in it are kept and lose the link."""
    owned(storage.get_world(world_id), user_id, "World")
    storage.delete_world(world_id)
    return {"ok": True}
