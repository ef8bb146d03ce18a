"""Server-Sent-Events assembly for streamed chat completions.

The upstream sends newline-delimited frames:

    data: {"choices":[{"delta":{"content":"Hel"}}]}
    data: {"choices":[{"delta":{"content":"lo"}}]}
    data: [DONE]

StreamAssembler buffers raw bytes, processes every complete line it has, and
reports the accumulated text after each frame that carried content. Only
complete lines are parsed, so however the network splits the bytes the final
text is the same.

A data line whose JSON does not parse is held back and retried together with
the next line, in case a frame was broken across lines. If the next line is a
fresh, valid frame the held-back fragment is dropped. Parse problems are never
raised to the caller.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"


class StreamAssembler:
    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._buffer = b""
        self._held = ""  # unparsed payload waiting for more data
        self._parts: list[str] = []
        self.done = False

    @property
    def text(self) -> str:
        """Everything accumulated so far."""
        return "".join(self._parts)

    # ------------------------------------------------------------------
    # Feeding
    # ------------------------------------------------------------------

    def feed(self, chunk: bytes | str) -> list[str]:
        """Buffer a chunk and process every complete line.

        Returns the full-so-far text after each content-bearing frame, in
        order. Returns [] once the stream has signalled [DONE].
        """
        if self.done:
            return []
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._buffer += chunk

        updates: list[str] = []
        while not self.done:
            newline = self._buffer.find(b"\n")
            if newline == -1:
                break
            raw = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            if self._process_line(raw.decode("utf-8", errors="replace")):
                updates.append(self.text)
        return updates

    def finish(self) -> list[str]:
        """Flush a trailing line with no newline at end of stream."""
        updates: list[str] = []
        if not self.done and self._buffer:
            raw, self._buffer = self._buffer, b""
            if self._process_line(raw.decode("utf-8", errors="replace")):
                updates.append(self.text)
        if self._held:
            logger.debug("dropping unparseable frame at end of stream: %r", self._held)
            self._held = ""
        return updates

    async def iter_text(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
        """Yield the accumulated text after each delta from a byte stream.

        Starts from a clean state on every call. Stops reading once [DONE]
        arrives, and always closes the source iterator so an abandoned
        consumer does not leave the connection open.
        """
        self.reset()
        try:
            async for chunk in chunks:
                for text in self.feed(chunk):
                    yield text
                if self.done:
                    break
            for text in self.finish():
                yield text
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

    # ------------------------------------------------------------------
    # Line handling
    # ------------------------------------------------------------------

    def _process_line(self, line: str) -> bool:
        """Handle one line. Returns True when content was appended."""
        if line.endswith("\r"):
            line = line[:-1]

        if self._held:
            if line.startswith(DATA_PREFIX):
                # A new frame; the held fragment is not going to complete
                logger.debug("dropping incomplete frame: %r", self._held)
                self._held = ""
            else:
                held, self._held = self._held, ""
                return self._process_payload(held + line)

        if not line.strip() or line.startswith(":"):
            return False
        if not line.startswith(DATA_PREFIX):
            return False
        return self._process_payload(line[len(DATA_PREFIX):])

    def _process_payload(self, payload: str) -> bool:
        if payload.strip() == DONE_MARKER:
            self.done = True
            return False
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            self._held = payload
            return False

        content = _delta_content(data)
        if not content:
            return False
        self._parts.append(content)
        return True


def _delta_content(data: object) -> str | None:
    """Pull choices[0].delta.content out of a chunk, tolerating odd shapes."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None
