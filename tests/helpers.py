"""Test doubles shared across test modules."""

import asyncio
import json


def frame(content: str) -> str:
    """One chat.completion.chunk SSE frame carrying a content delta."""
    chunk = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(chunk)}\n\n"


def sse(*deltas: str, done: bool = True) -> bytes:
    """A complete SSE body for the given deltas."""
    body = "".join(frame(d) for d in deltas)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


class StubLLM:
    """Yields canned byte chunks. Records every request it receives.

    Args:
        chunks:      Byte chunks to yield, in order.
        error:       Exception to raise instead of (or part-way through) the stream.
        error_after: Number of chunks to yield before raising ``error``.
        gate:        Optional asyncio.Event the stream waits on before yielding.
    """

    def __init__(self, chunks=(), error=None, error_after=0, gate=None):
        self.chunks = list(chunks)
        self.error = error
        self.error_after = error_after
        self.gate = gate
        self.requests = []
        self.closed = False

    async def stream(self, request):
        self.requests.append(request)
        try:
            if self.gate is not None:
                await self.gate.wait()
            for i, chunk in enumerate(self.chunks):
                if self.error is not None and i == self.error_after:
                    raise self.error
                yield chunk
                await asyncio.sleep(0)
            if self.error is not None and self.error_after >= len(self.chunks):
                raise self.error
        finally:
            self.closed = True


class FixedRng:
    """Stand-in for random.Random that returns preset die faces."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = []

    def randint(self, low, high):
        self.calls.append((low, high))
        return self.values.pop(0)
