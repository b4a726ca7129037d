"""
Deduplication and rate limiting for inbound message webhooks.

The telephony provider retries webhooks it believes failed and senders sometimes
fire bursts of messages. AdmissionGate decides, before any conversation state is
touched, whether an inbound event is new, a replay of an event already seen
within the dedupe window, or too close to the sender's previous accepted event.
The maps are best-effort process memory, not a durable ledger.
"""

import asyncio
import logging
import threading
import time
from enum import Enum
from typing import Callable, Dict, Optional

from lead_relay.config.constants import (
    DEFAULT_DEDUPE_WINDOW,
    DEFAULT_MIN_MESSAGE_INTERVAL,
    DEFAULT_SWEEP_INTERVAL,
    LOGGER_NAME,
)

logger = logging.getLogger(LOGGER_NAME)


class Decision(str, Enum):
    """Outcome of an admission check."""
    ACCEPT = "accept"
    DUPLICATE = "duplicate"
    RATE_LIMITED = "rate_limited"


class AdmissionGate:
    """Per-message-id dedupe and per-sender rate limiting."""

    def __init__(
        self,
        dedupe_window: float = DEFAULT_DEDUPE_WINDOW,
        min_interval: float = DEFAULT_MIN_MESSAGE_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.dedupe_window = dedupe_window
        self.min_interval = min_interval
        self._clock = clock
        self.seen_messages: Dict[str, float] = {}
        self.last_accepted: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._sweeper_task: Optional[asyncio.Task] = None

    def admit(self, sender_id: str, message_id: Optional[str] = None) -> Decision:
        """
        Decide whether an inbound event should be processed.

        Args:
            sender_id: The sender's phone number
            message_id: Provider message id, if the event carried one

        Returns:
            Decision.DUPLICATE if the message id was seen within the window,
            Decision.RATE_LIMITED if the sender's last accepted event is too recent,
            otherwise Decision.ACCEPT (and both maps are updated)
        """
        with self._lock:
            now = self._clock()

            if message_id:
                first_seen = self.seen_messages.get(message_id)
                if first_seen is not None and now - first_seen < self.dedupe_window:
                    logger.info(f"Duplicate message {message_id} detected, ignoring")
                    return Decision.DUPLICATE

            last = self.last_accepted.get(sender_id)
            if last is not None and now - last < self.min_interval:
                logger.info(f"Rate limiting {sender_id} - too many messages")
                return Decision.RATE_LIMITED

            if message_id:
                self.seen_messages[message_id] = now
            self.last_accepted[sender_id] = now
            return Decision.ACCEPT

    def sweep(self) -> int:
        """
        Remove dedupe entries older than the window.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            threshold = now - self.dedupe_window
            expired = [
                message_id
                for message_id, first_seen in list(self.seen_messages.items())
                if first_seen < threshold
            ]
            for message_id in expired:
                del self.seen_messages[message_id]

            # Rate-limit entries older than both windows are never consulted again
            sender_threshold = now - max(self.dedupe_window, self.min_interval)
            stale_senders = [
                sender_id
                for sender_id, last in list(self.last_accepted.items())
                if last < sender_threshold
            ]
            for sender_id in stale_senders:
                del self.last_accepted[sender_id]

        logger.debug(
            f"Deduplication cleanup: removed {len(expired)}, "
            f"{len(self.seen_messages)} messages being tracked"
        )
        return len(expired)

    async def _run_sweeper(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Error during dedupe sweep: {e}", exc_info=True)

    def start_sweeper(self, interval: float = DEFAULT_SWEEP_INTERVAL) -> asyncio.Task:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper_task is None or self._sweeper_task.done():
            self._sweeper_task = asyncio.create_task(self._run_sweeper(interval))
            logger.info(f"Dedupe sweeper started (every {interval}s)")
        return self._sweeper_task

    async def stop_sweeper(self) -> None:
        task = self._sweeper_task
        self._sweeper_task = None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
