"""Server-Sent Events plumbing for pipeline progress streams."""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Set

from fastapi.responses import StreamingResponse

from evals.models import WireModel
from evals.reporter import ProgressReporter, drive

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Pipelines keep running after their client disconnects
_background_tasks: Set[asyncio.Task] = set()


def encode_event(message: Dict[str, Any]) -> str:
    return f"data: {json.dumps(message)}\n\n"


async def event_stream(
    run: Callable[[ProgressReporter], Awaitable[WireModel]],
    failure_message: str,
) -> AsyncIterator[str]:
    """Start ``run`` in the background and yield its messages as SSE records.

    The stream ends after the terminal ``complete`` or ``error`` record.
    """
    reporter = ProgressReporter()
    task = asyncio.create_task(drive(reporter, run, failure_message))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    async for message in reporter:
        yield encode_event(message)


def sse_response(
    run: Callable[[ProgressReporter], Awaitable[WireModel]],
    failure_message: str,
) -> StreamingResponse:
    return StreamingResponse(
        event_stream(run, failure_message),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
