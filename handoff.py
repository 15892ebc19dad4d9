"""Keyscribe handoff mailbox — bounded transfer from foreign threads into the asyncio loop."""

import asyncio
import time

from logging_utils import log_debug, log_error


class Mailbox:
    """
    Bounded FIFO owned by the asyncio loop.

    post() runs on the loop thread and never blocks: on overflow the oldest
    item is discarded. post_threadsafe() is the entry point for the audio
    callback and the hotkey listener thread.
    """

    def __init__(self, name, maxsize):
        self.name = name
        self._queue = asyncio.Queue(maxsize=maxsize)
        self._loop = None
        self.dropped = 0
        self._last_drop_log_time = 0.0

    def bind(self, loop=None):
        """Attach to the running loop. Must be called before post_threadsafe()."""
        self._loop = loop or asyncio.get_running_loop()

    def post(self, item):
        """Non-blocking put. Returns False if an old item had to be discarded."""
        try:
            self._queue.put_nowait(item)
            return True
        except asyncio.QueueFull:
            try:
                self._queue.get_nowait()  # discard oldest
            except asyncio.QueueEmpty:
                pass
            self._queue.put_nowait(item)
            self.dropped += 1

            # Throttled overflow logging (at most once per 5 seconds)
            now = time.monotonic()
            if (now - self._last_drop_log_time) > 5.0:
                log_error(f"[MAILBOX] {self.name} full, dropped oldest ({self.dropped} total)")
                self._last_drop_log_time = now
            return False

    def post_threadsafe(self, item):
        """Hand an item over from another thread. Never blocks the caller."""
        if self._loop is None:
            raise RuntimeError(f"Mailbox '{self.name}' is not bound to an event loop")
        try:
            self._loop.call_soon_threadsafe(self.post, item)
        except RuntimeError:
            # Loop already closed during shutdown
            log_debug(f"[MAILBOX] {self.name}: loop closed, item discarded")

    async def get(self):
        return await self._queue.get()

