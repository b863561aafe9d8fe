from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional
import asyncio
import logging
logger = logging.getLogger(__name__)

ALL_EVENTS = "*"


class ProgressState(Enum):
    """Per-file state transitions reported by the orchestrator."""
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressState.SUCCEEDED, ProgressState.FAILED, ProgressState.CANCELLED)


@dataclass(frozen=True)
class ProgressEvent:
    """One state transition for one file."""
    file_path: Path
    state: ProgressState
    attempt: int = 0
    url: Optional[str] = None
    error: Optional[str] = None
    delay: Optional[float] = None


class ProgressChannel:
    """
    Fire-and-forget event channel.

    publish() only enqueues and returns; a background dispatcher task
    delivers events to listeners in publish order. A listener that raises
    is logged and skipped, a slow one only delays the dispatcher. Sync
    listeners run in a worker thread, one event at a time.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()
        self._dispatcher: Optional[asyncio.Task] = None

    def on(self, event_name: str, callback: Callable):
        """Subscribe to a state value (e.g. "failed") or "*" for all events."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    def publish(self, event: ProgressEvent) -> None:
        """Enqueue an event without waiting for delivery."""
        self._queue.put_nowait(event)
        self._ensure_dispatcher()

    def _ensure_dispatcher(self) -> None:
        if self._dispatcher is not None and not self._dispatcher.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: events stay queued until the next publish inside one
            return
        self._dispatcher = loop.create_task(self._dispatch())

    async def _dispatch(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: ProgressEvent) -> None:
        callbacks = self._listeners.get(event.state.value, []) + self._listeners.get(ALL_EVENTS, [])
        for callback in callbacks[:]:  # Copy list to avoid modification during iteration
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(event)
                else:
                    await asyncio.to_thread(callback, event)
            except Exception as e:
                logger.error(f"Error in progress listener for {event.state.value}: {e}")

    async def aclose(self) -> None:
        """Deliver everything still queued, then stop the dispatcher."""
        if not self._queue.empty():
            self._ensure_dispatcher()
        if self._dispatcher is None:
            return
        await self._queue.join()
        self._dispatcher.cancel()
        try:
            await self._dispatcher
        except asyncio.CancelledError:
            pass
        self._dispatcher = None
