"""Progress reporting as an ordered message channel."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from core.errors import ConfigError
from .models import EventStatus, ProgressEvent, WireModel

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


class ProgressReporter:
    """Append-only sink for pipeline progress events.

    Producers call :meth:`emit`; each event is timestamped, appended to
    :attr:`events` and pushed to a queue that one consumer drains with
    ``async for``. :meth:`complete` and :meth:`fail` push the terminal
    message and close the channel; anything emitted afterwards is dropped.
    """

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._clock = clock
        self._queue: asyncio.Queue[Optional[Message]] = asyncio.Queue()
        self._closed = False
        self.events: List[ProgressEvent] = []
        self.exception: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _timestamp(self) -> datetime:
        now = self._clock()
        if self.events and now < self.events[-1].timestamp:
            return self.events[-1].timestamp
        return now

    def emit(self, phase: str, status: EventStatus = EventStatus.RUNNING, details: Optional[str] = None) -> Optional[ProgressEvent]:
        if self._closed:
            logger.debug(f"Dropping progress event after close: {phase}")
            return None
        event = ProgressEvent(timestamp=self._timestamp(), phase=phase, status=status, details=details)
        self.events.append(event)
        logger.info(f"[{status.value}] {phase}" + (f" - {details}" if details else ""))
        self._queue.put_nowait({"type": "log", "log": event.to_wire()})
        return event

    def logs(self) -> List[Message]:
        return [event.to_wire() for event in self.events]

    def complete(self, evaluation: Message) -> None:
        if self._closed:
            return
        self._queue.put_nowait({"type": "complete", "evaluation": evaluation})
        self._close()

    def fail(self, error: str, details: Optional[str] = None, phase: str = "Error occurred") -> None:
        if self._closed:
            return
        self.emit(phase, EventStatus.ERROR, details or error)
        message: Message = {"type": "error", "error": error}
        if details:
            message["details"] = details
        message["logs"] = self.logs()
        self._queue.put_nowait(message)
        self._close()

    def _close(self) -> None:
        self._closed = True
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[Message]:
        return self

    async def __anext__(self) -> Message:
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        return item


async def drive(
    reporter: ProgressReporter,
    run: Callable[[ProgressReporter], Awaitable[WireModel]],
    failure_message: str,
) -> Optional[WireModel]:
    """Run a pipeline and turn its outcome into the reporter's terminal message.

    Configuration errors surface their own message; anything else is reported
    under ``failure_message`` with the exception text as details.
    """
    try:
        report = await run(reporter)
    except ConfigError as exc:
        logger.error(f"Configuration error: {exc}")
        reporter.exception = exc
        reporter.fail(str(exc), phase="Error")
        return None
    except Exception as exc:
        logger.exception(f"{failure_message}: {exc}")
        reporter.exception = exc
        reporter.fail(failure_message, details=str(exc) or exc.__class__.__name__)
        return None

    reporter.complete(report.to_wire())
    return report
