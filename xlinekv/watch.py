"""Watch connections: creating and cancelling watches and forwarding events."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Protocol

from xlinekv.command import KeyRange
from xlinekv.state import StatusCode, StatusError

CHANNEL_SIZE = 128

log = logging.getLogger(__name__)


class KvWatcher(Protocol):
    """What a watch connection needs from the key-value store."""

    def watch(
        self,
        watch_id: int,
        key_range: KeyRange,
        start_revision: int,
        filters: list[int],
        event_sink: asyncio.Queue,
    ) -> tuple[list[Any], int]: ...

    def cancel(self, watch_id: int) -> int: ...


class ResponseSink(Protocol):
    """Destination of watch responses and errors."""

    async def put(self, item: WatchResponse | StatusError) -> None: ...


@dataclass
class WatchEvent:
    """Events produced by the store for one watch at one revision."""

    watch_id: int
    revision: int
    events: list[Any] = field(default_factory=list)

    def take_events(self) -> list[Any]:
        """Remove and return the carried events."""
        events, self.events = self.events, []
        return events


@dataclass
class WatchResponse:
    """A message sent back on a watch connection."""

    watch_id: int
    revision: int = 0
    created: bool = False
    canceled: bool = False
    events: list[Any] = field(default_factory=list)


@dataclass
class WatchCreateRequest:
    """Start watching ``[key, range_end)``; ``watch_id`` 0 picks a free id."""

    key: bytes
    range_end: bytes = b""
    start_revision: int = 0
    filters: list[int] = field(default_factory=list)
    watch_id: int = 0


@dataclass
class WatchCancelRequest:
    """Stop the watch with the given id."""

    watch_id: int


class WatchHandle:
    """State of one watch connection."""

    def __init__(self, kv_watcher: KvWatcher, responses: ResponseSink) -> None:
        self.kv_watcher = kv_watcher
        self.responses = responses
        self.events: asyncio.Queue[WatchEvent] = asyncio.Queue(maxsize=CHANNEL_SIZE)
        self.active_watch_ids: set[int] = set()
        # Ids start from 1; 0 asks for one to be generated.
        self.next_id = 1
        self.stopped = asyncio.Event()

    async def _send(self, item: WatchResponse | StatusError) -> None:
        try:
            await self.responses.put(item)
        except Exception as err:  # the receiving side is gone
            log.warning("failed to send watch response, stopping: %s", err)
            self.stopped.set()

    def validate_watch_id(self, watch_id: int) -> int | None:
        """Return a usable id, generating one for 0, or None if it is taken."""
        if watch_id == 0:
            while True:
                candidate = self.next_id
                self.next_id += 1
                if candidate not in self.active_watch_ids:
                    return candidate
        if watch_id in self.active_watch_ids:
            return None
        return watch_id

    async def handle_watch_create(self, req: WatchCreateRequest) -> None:
        """Register a watch and send its creation response and initial events."""
        watch_id = self.validate_watch_id(req.watch_id)
        if watch_id is None:
            await self._send(
                StatusError(
                    StatusCode.ALREADY_EXISTS,
                    f"Watch ID {req.watch_id} has already been used",
                )
            )
            return
        key_range = KeyRange(req.key, req.range_end)
        events, revision = self.kv_watcher.watch(
            watch_id, key_range, req.start_revision, list(req.filters), self.events
        )
        if watch_id in self.active_watch_ids:
            raise RuntimeError(f"WatchId {watch_id} already exists in watcher_map")
        self.active_watch_ids.add(watch_id)
        await self._send(WatchResponse(watch_id=watch_id, revision=revision, created=True))
        if events:
            await self._send(
                WatchResponse(watch_id=watch_id, revision=revision, events=list(events))
            )

    async def handle_watch_cancel(self, req: WatchCancelRequest) -> None:
        """Cancel a watch and report the result."""
        watch_id = req.watch_id
        if watch_id in self.active_watch_ids:
            self.active_watch_ids.discard(watch_id)
            revision = self.kv_watcher.cancel(watch_id)
            result: WatchResponse | StatusError = WatchResponse(
                watch_id=watch_id, revision=revision, canceled=True
            )
        else:
            result = StatusError(
                StatusCode.NOT_FOUND, f"Watch ID {watch_id} doesn't exist"
            )
        await self._send(result)

    async def handle_watch_request(
        self, req: WatchCreateRequest | WatchCancelRequest | None
    ) -> None:
        """Dispatch one request of the connection; None is ignored."""
        if req is None:
            return
        if isinstance(req, WatchCreateRequest):
            await self.handle_watch_create(req)
        elif isinstance(req, WatchCancelRequest):
            await self.handle_watch_cancel(req)
        else:
            raise TypeError(f"unsupported watch request: {req!r}")

    async def handle_watch_event(self, event: WatchEvent) -> None:
        """Forward the events of a store notification, if there are any."""
        events = event.take_events()
        if not events:
            return
        await self._send(
            WatchResponse(watch_id=event.watch_id, revision=event.revision, events=events)
        )

    def close(self) -> None:
        """Cancel every watch still active on this connection."""
        for watch_id in sorted(self.active_watch_ids):
            self.kv_watcher.cancel(watch_id)
        self.active_watch_ids.clear()


async def _next_item(iterator: Any) -> Any:
    return await iterator.__anext__()


async def run_watch_task(
    watcher: KvWatcher,
    responses: ResponseSink,
    requests: AsyncIterable[WatchCreateRequest | WatchCancelRequest | None],
) -> None:
    """Serve one watch connection until the client goes away or sending fails."""
    handle = WatchHandle(watcher, responses)
    iterator = requests.__aiter__()
    request_task: asyncio.Task | None = None
    event_task: asyncio.Task | None = None
    stop_task = asyncio.ensure_future(handle.stopped.wait())
    try:
        while True:
            if request_task is None:
                request_task = asyncio.ensure_future(_next_item(iterator))
            if event_task is None:
                event_task = asyncio.ensure_future(handle.events.get())
            done, _ = await asyncio.wait(
                {request_task, event_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if stop_task in done:
                break
            if event_task in done:
                event = event_task.result()
                event_task = None
                await handle.handle_watch_event(event)
            if request_task in done:
                task, request_task = request_task, None
                try:
                    req = task.result()
                except StopAsyncIteration:
                    log.warning("Watch client closes connection")
                    break
                except Exception as err:
                    log.warning("Receive WatchRequest error %r", err)
                    break
                await handle.handle_watch_request(req)
    finally:
        for task in (request_task, event_task, stop_task):
            if task is not None and not task.done():
                task.cancel()
        handle.close()