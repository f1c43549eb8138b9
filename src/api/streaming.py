"""
Helpers for streaming stored objects to HTTP responses.

Once response headers are sent an error can no longer become a status
code. prime() pulls the first chunk before the response starts so that
failures to open or decode the source still produce a proper error
response; anything later is logged and aborts the connection.
"""

import logging
from typing import AsyncIterator

logger = logging.getLogger(__name__)


async def prime(stream: AsyncIterator[bytes], key: str) -> AsyncIterator[bytes]:
    """
    Start `stream` and return an iterator over all of its chunks.

    Exceptions raised while producing the first chunk propagate to the
    caller, before any header has been sent.
    """
    try:
        first = await anext(stream)
    except StopAsyncIteration:
        first = b""
    return _resume(first, stream, key)


async def _resume(first: bytes, rest: AsyncIterator[bytes], key: str) -> AsyncIterator[bytes]:
    try:
        if first:
            yield first
        async for chunk in rest:
            yield chunk
    except Exception as e:
        logger.error(
            "Stream failed after headers were sent",
            extra={"key": key, "error": str(e)}
        )
        raise
    finally:
        # closing the source generator closes the upstream reader
        await rest.aclose()
