"""
Live broadcast channel.

Fans progress lines out to every attached viewer. Each viewer gets its own
bounded queue; a viewer that falls too far behind is detached instead of
slowing the run down.
"""

import asyncio
import logging
from typing import Set

from ..execution.models import ProgressEvent

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000


class BroadcastChannel:
    """Fan-out of text lines to any number of viewers."""

    def __init__(self, max_queue_size: int = DEFAULT_QUEUE_SIZE):
        self.max_queue_size = max_queue_size
        self._viewers: Set[asyncio.Queue] = set()

    @property
    def viewer_count(self) -> int:
        return len(self._viewers)

    def attach(self) -> asyncio.Queue:
        """Register a viewer and return the queue it should read from."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._viewers.add(queue)
        logger.debug(f"Viewer attached ({self.viewer_count} connected)")
        return queue

    def detach(self, queue: asyncio.Queue) -> None:
        self._viewers.discard(queue)
        logger.debug(f"Viewer detached ({self.viewer_count} connected)")

    def publish(self, message: str) -> int:
        """
        Deliver ``message`` to every viewer without waiting.

        Returns:
            Number of viewers that received the message
        """
        delivered = 0
        for queue in list(self._viewers):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping viewer whose queue is full")
                self._viewers.discard(queue)
        return delivered

    def publish_event(self, event: ProgressEvent) -> int:
        return self.publish(event.to_line())
