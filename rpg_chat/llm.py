"""LLM client — streaming HTTP connection to a chat-completion gateway.

The chat controller depends only on the protocol:

    def stream(self, request: ChatRequest) -> AsyncGenerator[bytes, None]: ...

The returned async iterator yields the upstream text/event-stream body
unmodified. Closing it (or abandoning it) closes the HTTP connection.

GatewayLLM is the real implementation: it composes the system prompt,
POSTs an OpenAI-compatible streaming request and relays the body.
Tests substitute a stub that yields canned SSE bytes.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Protocol

import httpx

from rpg_chat.models import ChatRequest
from rpg_chat.prompts import build_upstream_payload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class LLM(Protocol):
    def stream(self, request: ChatRequest) -> AsyncGenerator[bytes, None]: ...


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TransportError(RuntimeError):
    """The upstream could not be reached or answered with an error status."""

    default_message = "Failed to get AI response"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message or self.default_message)
        self.status_code = status_code


class RateLimitError(TransportError):
    default_message = "Rate limit exceeded. Please try again later."


class QuotaExceededError(TransportError):
    default_message = "AI credits exhausted. Please add more credits."


def error_for_status(status_code: int) -> TransportError:
    """Map a non-2xx upstream status onto the error users should see."""
    if status_code == 429:
        return RateLimitError(status_code=429)
    if status_code == 402:
        return QuotaExceededError(status_code=402)
    return TransportError(status_code=status_code)


# ---------------------------------------------------------------------------
# GatewayLLM
# ---------------------------------------------------------------------------

class GatewayLLM:
    """Async streaming client for an OpenAI-compatible chat gateway.

    POST {base_url}/chat/completions
         {"model": ..., "messages": [system, *turns], "stream": true}
    Response: text/event-stream of chat.completion.chunk frames.

    Args:
        base_url:  Gateway base URL, e.g. "https://ai.gateway.lovable.dev/v1".
        api_key:   Bearer token. Required.
        model:     Model identifier sent with every request.
        timeout:   HTTP timeout in seconds, or None to rely on the transport.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self._base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def stream(self, request: ChatRequest) -> AsyncGenerator[bytes, None]:
        if not self._api_key:
            raise TransportError("AI API key is not configured")

        body = build_upstream_payload(request, self._model)
        logger.debug(
            "gateway request url=%s model=%s turns=%d",
            self.url, self._model, len(request.messages),
        )

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                async with client.stream(
                    "POST", self.url, json=body, headers=self._headers()
                ) as resp:
                    if resp.status_code >= 400:
                        detail = (await resp.aread()).decode("utf-8", errors="replace")
                        logger.warning(
                            "gateway error status=%d body=%s", resp.status_code, detail[:500]
                        )
                        raise error_for_status(resp.status_code)
                    async for chunk in resp.aiter_bytes():
                        yield chunk
        except httpx.ConnectError as e:
            raise TransportError(f"Cannot connect to AI gateway at {self._base_url}") from e
        except httpx.TimeoutException as e:
            raise TransportError(f"AI gateway timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError(f"AI gateway stream failed: {e}") from e
        except httpx.InvalidURL as e:
            raise TransportError(f"Invalid AI gateway URL: {self._base_url}") from e
