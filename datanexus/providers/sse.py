"""Server-sent events line reader"""
from typing import AsyncIterator

import httpx


async def iter_sse_data(response: httpx.Response) -> AsyncIterator[str]:
    """
    Yield the payload of each ``data:`` line of an SSE response.

    Event names, comments and blank keep-alive lines are skipped.
    """
    async for line in response.aiter_lines():
        if not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if data:
            yield data
