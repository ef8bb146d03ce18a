"""FastAPI API endpoints under /api.

Endpoint groups: settings/health, worlds, characters, sessions (transcript,
streamed send, dice rolls), memories, and the stateless chat proxy and dice
roller. Every record is scoped to the caller's X-User-Id.
"""

from fastapi import APIRouter

from .characters import router as characters_router
from .chat import router as chat_router
from .memories import router as memories_router
from .sessions import router as sessions_router
from .settings import router as settings_router
from .worlds import router as worlds_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(worlds_router)
router.include_router(characters_router)
router.include_router(sessions_router)
router.include_router(memories_router)
router.include_router(chat_router)
