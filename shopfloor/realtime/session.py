"""
Client-side realtime session.

One ``RealtimeSession`` per client session owns the reconnect state: after
a lost (or failed) connection it retries with exponential backoff starting
at ``RECONNECT_BASE_DELAY`` seconds, and once ``RECONNECT_MAX_ATTEMPTS``
retries have failed it falls back to polling every ``POLL_INTERVAL``
seconds. Events are only hints to refetch, so polling keeps the client
eventually consistent.
"""

import asyncio
import logging

from ..conf import get_setting

logger = logging.getLogger(__name__)

DISCONNECTED = 'disconnected'
CONNECTING = 'connecting'
CONNECTED = 'connected'
BACKOFF = 'backoff'
POLLING = 'polling'
CLOSED = 'closed'

TRANSITIONS = {
    DISCONNECTED: {CONNECTING, CLOSED},
    CONNECTING: {CONNECTED, BACKOFF, POLLING, CLOSED},
    CONNECTED: {BACKOFF, POLLING, CLOSED},
    BACKOFF: {CONNECTING, CLOSED},
    POLLING: {DISCONNECTED, CLOSED},
    CLOSED: set(),
}

# Errors that count as a lost connection
CONNECTION_ERRORS = (OSError, ConnectionError, asyncio.TimeoutError)


class InvalidTransition(Exception):
    pass


class RealtimeSession:
    """
    Reconnecting event consumer.

    Args:
        connect: Coroutine function returning an async iterable of messages
        on_event: Called with every received message
        poll: Coroutine function refetching state while polling
        sleep: Coroutine function used for waits (injectable for tests)
    """

    def __init__(self, connect, on_event=None, poll=None, base_delay=None,
                 max_attempts=None, poll_interval=None, sleep=asyncio.sleep):
        self.connect = connect
        self.on_event = on_event or (lambda message: None)
        self.poll = poll
        self.base_delay = base_delay if base_delay is not None else get_setting('RECONNECT_BASE_DELAY')
        self.max_attempts = max_attempts if max_attempts is not None else get_setting('RECONNECT_MAX_ATTEMPTS')
        self.poll_interval = poll_interval if poll_interval is not None else get_setting('POLL_INTERVAL')
        self.sleep = sleep
        self.state = DISCONNECTED
        self.attempts = 0

    def __repr__(self):
        return f"<RealtimeSession {self.state} attempts={self.attempts}>"

    def _transition(self, state):
        if state not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state} -> {state}")
        logger.debug("Realtime session %s -> %s", self.state, state)
        self.state = state

    def connecting(self):
        self._transition(CONNECTING)

    def connected(self):
        self._transition(CONNECTED)
        self.attempts = 0

    def connection_lost(self):
        """
        Record a failed or dropped connection.

        Returns:
            Seconds to wait before the next attempt, or None once the
            session has fallen back to polling
        """
        if self.attempts >= self.max_attempts:
            self._transition(POLLING)
            logger.warning("Realtime connection gave up after %d attempts; polling every %ss",
                           self.attempts, self.poll_interval)
            return None
        self.attempts += 1
        self._transition(BACKOFF)
        return self.base_delay * 2 ** (self.attempts - 1)

    def reconnect(self):
        """Leave polling and start a fresh round of attempts."""
        self.attempts = 0
        self._transition(DISCONNECTED)

    def close(self):
        if self.state != CLOSED:
            self._transition(CLOSED)

    @property
    def closed(self):
        return self.state == CLOSED

    async def _consume(self):
        self.connecting()
        try:
            messages = await self.connect()
        except CONNECTION_ERRORS as e:
            logger.info("Realtime connection failed: %s", e)
            return
        if self.closed:
            return
        self.connected()
        try:
            async for message in messages:
                self.on_event(message)
                if self.closed:
                    return
        except CONNECTION_ERRORS as e:
            logger.info("Realtime connection dropped: %s", e)

    async def run(self):
        """Drive the session until ``close()`` is called."""
        while not self.closed:
            if self.state == POLLING:
                if self.poll is not None:
                    await self.poll()
                await self.sleep(self.poll_interval)
                continue

            await self._consume()
            if self.closed:
                break
            delay = self.connection_lost()
            if delay is not None:
                await self.sleep(delay)
