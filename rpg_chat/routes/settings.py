"""Health check and settings endpoints."""

from fastapi import APIRouter, Depends

from rpg_chat import config
from rpg_chat.storage import Storage

from .deps import get_storage
from .models import UpdateSettings

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(storage: Storage = Depends(get_storage)):
    """Get app settings (gateway, model, chat defaults). The API key is never returned."""
    return config.get_config(storage.base_path)


@router.patch("/settings")
async def update_settings(body: UpdateSettings, storage: Storage = Depends(get_storage)):
    """Update app settings (partial merge)."""
    return config.update_config(storage.base_path, body.model_dump(exclude_unset=True))
