"""Request-scoped dependencies shared by the routers."""

from typing import TypeVar

from fastapi import Header, HTTPException, Request

from rpg_chat import config
from rpg_chat.llm import LLM, GatewayLLM
from rpg_chat.storage import Storage

R = TypeVar("R")


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_user_id(x_user_id: str = Header("local")) -> str:
    """Owner of the request. Authentication happens in front of this service."""
    return x_user_id


def get_llm(request: Request) -> LLM:
    """The app's injected LLM, or a gateway client built from current config."""
    llm = request.app.state.llm
    if llm is not None:
        return llm
    cfg = config.get_config(get_storage(request).base_path)
    return GatewayLLM(
        base_url=cfg["gateway_url"],
        api_key=config.api_key(),
        model=cfg["model"],
        timeout=cfg["timeout"],
    )


def owned(record: R | None, user_id: str, what: str) -> R:
    """Return record if it exists and belongs to user_id, else 404."""
    if record is None or getattr(record, "user_id", None) != user_id:
        raise HTTPException(404, f"{what} not found")
    return record
