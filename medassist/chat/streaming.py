from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Callable, Iterable, Iterator

from fastapi.concurrency import iterate_in_threadpool

logger = logging.getLogger(__name__)

STREAM_PROTOCOL_HEADER = "X-Vercel-AI-Data-Stream"
STREAM_PROTOCOL_VERSION = "v1"
STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"

STREAM_ERROR_MESSAGE = "An error occurred while processing your request"


def encode_text_part(text: str) -> str:
    """Data-stream v1 text part: `0:"<json string>"\\n`."""
    return f"0:{json.dumps(text)}\n"


def guard_stream(
    chunks: Iterable[str],
    on_error: Callable[[BaseException], str] | None = None,
) -> Iterator[str]:
    """
    Yield chunks; a failure mid-stream becomes one final error chunk.

    Text already yielded stays with the caller. If the consumer stops early
    (client disconnect) the underlying iterator is closed, which releases the
    provider connection.
    """

    iterator = iter(chunks)
    try:
        for chunk in iterator:
            yield chunk
    except Exception as exc:
        logger.error("Stream failed after partial output: %s", exc)
        yield on_error(exc) if on_error is not None else STREAM_ERROR_MESSAGE
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            close()


async def stream_text_parts(chunks: Iterable[str]) -> AsyncIterator[str]:
    """
    Encode chunks as text parts for a StreamingResponse.

    Each chunk is pulled on the threadpool. When the response task is
    cancelled (client disconnect) the source iterator is closed here rather
    than left to garbage collection, so generation stops and the provider
    connection is released.
    """

    iterator = iter(chunks)
    try:
        async for chunk in iterate_in_threadpool(iterator):
            yield encode_text_part(chunk)
    finally:
        # A pending next() has already returned: worker threads are not abandoned on cancel.
        close = getattr(iterator, "close", None)
        if close is not None:
            close()
