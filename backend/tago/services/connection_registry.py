"""
Registry of live Server-Sent-Events channels, at most one per user.

Requests run on worker threads while SSE streams are consumed on the event
loop, so every map operation is done under one lock and a channel write only
enqueues the event and wakes the loop (never blocks on the socket).
"""
import asyncio
import itertools
import json
import logging
import queue
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from tago.core.config import settings
from tago.core.exceptions import DeliveryError
from tago.core.utils import serialize_date

logger = logging.getLogger(__name__)

_channel_ids = itertools.count(1)


def format_sse(event_name: str, data: Any) -> str:
    """Render one SSE frame. Non-string data is sent as JSON."""
    if isinstance(data, str):
        payload = data
    else:
        payload = json.dumps(data, ensure_ascii=False, default=serialize_date)
    lines = payload.splitlines() or [""]
    data_lines = "\n".join(f"data: {line}" for line in lines)
    return f"event: {event_name}\n{data_lines}\n\n"


class EventChannel:
    """
    One outbound event stream for a single user.

    A channel terminates exactly once, through ``complete()``,
    ``complete_with_error()`` or ``expire()``, and then runs the matching
    callbacks. Writes to a terminated channel raise ``DeliveryError``.
    """

    def __init__(self, user_id: int, timeout_seconds: float):
        self.user_id = user_id
        self.channel_id = next(_channel_ids)
        self.timeout_seconds = timeout_seconds
        self.expires_at = time.monotonic() + timeout_seconds
        self.error: Optional[BaseException] = None

        self._events: "queue.SimpleQueue[tuple]" = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._closed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None

        self._completion_callbacks: List[Callable[[], None]] = []
        self._timeout_callbacks: List[Callable[[], None]] = []
        self._error_callbacks: List[Callable[[BaseException], None]] = []

    def __repr__(self) -> str:
        return f"<EventChannel id={self.channel_id} user_id={self.user_id} closed={self._closed}>"

    @property
    def closed(self) -> bool:
        return self._closed

    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def on_completion(self, callback: Callable[[], None]):
        self._completion_callbacks.append(callback)

    def on_timeout(self, callback: Callable[[], None]):
        self._timeout_callbacks.append(callback)

    def on_error(self, callback: Callable[[BaseException], None]):
        self._error_callbacks.append(callback)

    def send(self, event_name: str, data: Any):
        """Queue a named event. Raises DeliveryError if the channel is gone."""
        if self.is_expired():
            self.expire()
        with self._lock:
            if self._closed:
                raise DeliveryError(f"Channel {self.channel_id} for user {self.user_id} is closed")
            self._events.put((event_name, data))
            loop, wakeup = self._loop, self._wakeup
        if loop is not None:
            try:
                loop.call_soon_threadsafe(wakeup.set)
            except RuntimeError as e:
                # Event loop already shut down
                raise DeliveryError(f"Channel {self.channel_id} for user {self.user_id} lost its event loop") from e

    def pending_events(self) -> List[tuple]:
        """Drain queued (event_name, data) pairs."""
        events = []
        while True:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                return events

    def complete(self):
        if self._terminate():
            self._run_callbacks(self._completion_callbacks)

    def complete_with_error(self, error: BaseException):
        if self._terminate(error):
            self._run_callbacks(self._error_callbacks, error)

    def expire(self):
        if self._terminate():
            self._run_callbacks(self._timeout_callbacks)

    def _terminate(self, error: Optional[BaseException] = None) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            self.error = error
            loop, wakeup = self._loop, self._wakeup
        if loop is not None and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(wakeup.set)
            except RuntimeError:
                pass  # loop stopped between the check and the call
        return True

    def _run_callbacks(self, callbacks, *args):
        for callback in callbacks:
            try:
                callback(*args)
            except Exception:
                logger.exception(f"SSE channel callback failed: user_id={self.user_id}, channel_id={self.channel_id}")

    async def stream(self, keepalive_seconds: float = None):
        """
        Yield SSE frames until the channel terminates.

        Must run on the event loop that serves the response. Leaving the
        generator early (client disconnect) completes the channel.
        """
        if keepalive_seconds is None:
            keepalive_seconds = settings.SSE_KEEPALIVE_SECONDS
        with self._lock:
            self._loop = asyncio.get_running_loop()
            self._wakeup = asyncio.Event()
        wakeup = self._wakeup
        try:
            while True:
                wakeup.clear()
                for event_name, data in self.pending_events():
                    yield format_sse(event_name, data)
                if self._closed:
                    return
                remaining = self.expires_at - time.monotonic()
                if remaining <= 0:
                    self.expire()
                    return
                try:
                    await asyncio.wait_for(wakeup.wait(), timeout=min(remaining, keepalive_seconds))
                except asyncio.TimeoutError:
                    if not self._closed and not self.is_expired():
                        yield ": keepalive\n\n"
        finally:
            self.complete()


class ConnectionRegistry:
    """
    Maps a user id to its single live ``EventChannel``.

    Created once per process (see ``tago.main``) and closed at shutdown.
    """

    def __init__(self, timeout_seconds: float = None):
        if timeout_seconds is None:
            timeout_seconds = settings.SSE_TIMEOUT_MINUTES * 60
        self.timeout_seconds = timeout_seconds
        self._channels: Dict[int, EventChannel] = {}
        self._lock = threading.Lock()

    def create(self, user_id: int) -> EventChannel:
        """Register a new channel for the user, closing the one it replaces."""
        channel = EventChannel(user_id, self.timeout_seconds)
        channel.on_completion(lambda: self._on_terminated(channel, "completed"))
        channel.on_timeout(lambda: self._on_terminated(channel, "timed out"))
        channel.on_error(lambda error: self._on_terminated(channel, f"failed: {error}"))

        with self._lock:
            previous = self._channels.get(user_id)
            self._channels[user_id] = channel
            count = len(self._channels)

        if previous is not None:
            previous.complete()
        logger.info(f"SSE channel created: user_id={user_id}, channel_id={channel.channel_id}, connections={count}")
        return channel

    def get(self, user_id: int) -> Optional[EventChannel]:
        with self._lock:
            return self._channels.get(user_id)

    def send(self, user_id: int, event_name: str, data: Any) -> bool:
        """
        Push one event to the user's channel if there is one.

        Returns True when the event was handed to a live channel. Failures
        drop the channel and are never raised.
        """
        channel = self.get(user_id)
        if channel is None:
            logger.debug(f"No SSE channel, push skipped: user_id={user_id}, event={event_name}")
            return False

        try:
            channel.send(event_name, data)
        except Exception as e:
            self._discard(channel)
            channel.complete_with_error(e)
            logger.error(f"SSE push failed: user_id={user_id}, event={event_name}, error={e}")
            return False

        logger.debug(f"SSE push queued: user_id={user_id}, event={event_name}")
        return True

    def remove(self, user_id: int):
        """Deregister and close the user's channel. No-op if absent."""
        with self._lock:
            channel = self._channels.pop(user_id, None)
        if channel is not None:
            channel.complete()
            logger.info(f"SSE channel removed: user_id={user_id}, channel_id={channel.channel_id}")

    def connection_count(self) -> int:
        with self._lock:
            return len(self._channels)

    def close_all(self):
        with self._lock:
            channels = list(self._channels.values())
            self._channels.clear()
        for channel in channels:
            channel.complete()
        logger.info(f"Closed {len(channels)} SSE channels")

    def _discard(self, channel: EventChannel) -> bool:
        """Remove the entry only if it still points at this channel."""
        with self._lock:
            if self._channels.get(channel.user_id) is channel:
                del self._channels[channel.user_id]
                return True
            return False

    def _on_terminated(self, channel: EventChannel, reason: str):
        if self._discard(channel):
            logger.info(f"SSE channel {reason}: user_id={channel.user_id}, channel_id={channel.channel_id}")
