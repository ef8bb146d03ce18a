"""Chat session endpoints: sessions, transcript, send (streamed) and dice rolls.

POST /sessions/{id}/send runs a ChatSessionController for the session and
streams its progress as Server-Sent Events:

  event: state     {"state": "sending" | "streaming" | "failed" | "idle"}
  event: message   a message appended to the transcript (user, placeholder)
  event: delta     {"id": "streaming", "content": <full text so far>}
  event: replaced  {"replaces": "streaming", "message": <persisted reply>}
  event: removed   {"id": "streaming"}   (placeholder discarded on failure)
  event: notice    {"level", "text", "event"}   RPG events and errors

Only one send per session runs at a time; the running controller is kept in
app.state.controllers until its turn ends. A client that disconnects cancels
the turn, which closes the upstream stream.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from rpg_chat import config
from rpg_chat.controller import (
    ChatListener,
    ChatSessionController,
    ChatState,
    Notice,
    start_session,
)
from rpg_chat.llm import LLM
from rpg_chat.models import Message
from rpg_chat.storage import Storage

from .deps import get_llm, get_storage, get_user_id, owned
from .models import CreateSession, RollBody, SendBody

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

BUSY_TEXT = "A reply is already streaming for this session"


class SSEListener(ChatListener):
    """Turns controller callbacks into SSE frames on a queue."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[str | None] = asyncio.Queue()

    def _put(self, event: str, data: object) -> None:
        self.queue.put_nowait(f"event: {event}\ndata: {json.dumps(data)}\n\n")

    def close(self) -> None:
        self.queue.put_nowait(None)

    def message_added(self, message: Message) -> None:
        self._put("message", message.model_dump())

    def message_updated(self, message: Message) -> None:
        self._put("delta", {"id": message.id, "content": message.content})

    def message_replaced(self, old_id: str, message: Message) -> None:
        self._put("replaced", {"replaces": old_id, "message": message.model_dump()})

    def message_removed(self, message_id: str) -> None:
        self._put("removed", {"id": message_id})

    def state_changed(self, state: ChatState) -> None:
        self._put("state", {"state": state.value})

    def notify(self, notice: Notice) -> None:
        self._put("notice", {
            "level": notice.level,
            "text": notice.text,
            "event": notice.event.model_dump() if notice.event else None,
        })


class CollectingListener(ChatListener):
    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)


def _controllers(request: Request) -> dict[str, ChatSessionController]:
    return request.app.state.controllers


# ── Sessions ─────────────────────────────────────────────────


@router.get("/characters/{character_id}/sessions")
async def list_sessions(
    character_id: str,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """List a character's sessions, most recently active first."""
    owned(storage.get_character(character_id), user_id, "Character")
    return storage.list_sessions(character_id)


@router.post("/characters/{character_id}/sessions", status_code=201)
async def create_session(
    character_id: str,
    body: CreateSession,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Start a new chat session with a character."""
    character = owned(storage.get_character(character_id), user_id, "Character")
    return start_session(storage, character, user_id, title=body.title)


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Get a session with its RPG state."""
    return owned(storage.get_session(session_id), user_id, "Session")


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: str,
    request: Request,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Delete a session and its transcript."""
    owned(storage.get_session(session_id), user_id, "Session")
    if session_id in _controllers(request):
        raise HTTPException(409, "A reply is still streaming for this session")
    storage.delete_session(session_id)
    return {"ok": True}


@router.get("/sessions/{session_id}/messages")
async def get_messages(
    session_id: str,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
):
    """Get the session transcript in order."""
    owned(storage.get_session(session_id), user_id, "Session")
    return storage.get_messages(session_id)


# ── Chat turn ────────────────────────────────────────────────


@router.post("/sessions/{session_id}/send")
async def send_message(
    session_id: str,
    body: SendBody,
    request: Request,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
    llm: LLM = Depends(get_llm),
):
    """Send a message and stream the reply as SSE frames."""
    owned(storage.get_session(session_id), user_id, "Session")
    if not body.message.strip():
        raise HTTPException(400, "Message is empty")
    controllers = _controllers(request)
    if session_id in controllers:
        raise HTTPException(409, BUSY_TEXT)

    cfg = config.get_config(storage.base_path)
    listener = SSEListener()
    controller = ChatSessionController.open(
        storage, llm, session_id,
        safe_mode=cfg["safe_mode"] if body.safe_mode is None else body.safe_mode,
        history_limit=cfg["history_limit"],
        listener=listener,
    )
    if controller is None:
        raise HTTPException(404, "Character not found")

    async def run_turn() -> None:
        try:
            await controller.send_message(body.message)
        finally:
            listener.close()

    async def event_stream():
        # The registry entry lives exactly as long as this generator runs
        if session_id in controllers:
            listener.notify(Notice(level="error", text=BUSY_TEXT))
            yield listener.queue.get_nowait()
            return
        controllers[session_id] = controller
        task = asyncio.create_task(run_turn())
        try:
            while True:
                frame = await listener.queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            if not task.done():
                logger.info("client left mid-turn, cancelling session=%s", session_id)
                task.cancel()
            controllers.pop(session_id, None)

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/sessions/{session_id}/roll")
async def roll_dice(
    session_id: str,
    body: RollBody,
    request: Request,
    user_id: str = Depends(get_user_id),
    storage: Storage = Depends(get_storage),
    llm: LLM = Depends(get_llm),
):
    """Roll dice for the player and post the result into the transcript."""
    owned(storage.get_session(session_id), user_id, "Session")
    if session_id in _controllers(request):
        raise HTTPException(409, "A reply is still streaming for this session")
    listener = CollectingListener()
    controller = ChatSessionController.open(storage, llm, session_id, listener=listener)
    if controller is None:
        raise HTTPException(404, "Character not found")
    message = await controller.roll_dice(body.notation)
    if message is None:
        raise HTTPException(500, listener.notices[-1].text if listener.notices else "Roll failed")
    return {"message": message, "notices": [n.text for n in listener.notices]}
