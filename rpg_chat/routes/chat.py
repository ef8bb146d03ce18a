"""Chat proxy and stateless dice endpoints.

POST /chat composes the system prompt from the request and relays the
upstream event-stream unmodified. Upstream 429 and 402 come back with the
same status and a readable {"error": ...} body; anything else is a 500.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from rpg_chat import dice
from rpg_chat.llm import LLM, TransportError
from rpg_chat.models import ChatRequest
from rpg_chat.prompts import PromptError

from .deps import get_llm
from .models import RollBody

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/chat")
async def chat_proxy(body: ChatRequest, llm: LLM = Depends(get_llm)):
    """Relay a streamed chat completion for the given character context."""
    stream = llm.stream(body)
    try:
        # Pull the first chunk so upstream errors surface before headers go out
        first = await anext(stream, b"")
    except TransportError as e:
        status = e.status_code if e.status_code in (429, 402) else 500
        return JSONResponse({"error": str(e)}, status_code=status)
    except PromptError as e:
        logger.warning("chat prompt failed: %s", e)
        return JSONResponse({"error": str(e)}, status_code=500)

    async def relay():
        try:
            if first:
                yield first
            async for chunk in stream:
                yield chunk
        except TransportError as e:
            # Headers are already sent; the client sees a truncated stream
            logger.warning("chat stream broke mid-response: %s", e)
        finally:
            await stream.aclose()

    return StreamingResponse(relay(), media_type="text/event-stream")


@router.post("/dice")
async def roll(body: RollBody):
    """Roll dice without touching any session."""
    return dice.roll(body.notation)
