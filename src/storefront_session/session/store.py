"""Process-wide session cell with sequenced writes and snapshot fan-out."""

from __future__ import annotations

import asyncio
import logging

from storefront_session.models.identity import Profile, SessionSnapshot

logger = logging.getLogger(__name__)


class SessionStore:
    """Holds the current SessionSnapshot.

    Writers take a sequence number when they start an operation and hand it
    back when they apply the result. A result is applied only if nothing
    with a higher sequence has been applied already, so the store always
    converges on the most recently initiated operation.

    Only the event listener and credential operations write; everything
    else reads ``snapshot`` or consumes a ``subscribe()`` queue.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self._snapshot = SessionSnapshot()
        self._issued = 0
        self._applied = 0
        self._queue_size = queue_size
        self._subscribers: list[asyncio.Queue[SessionSnapshot]] = []

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def profile(self) -> Profile | None:
        return self._snapshot.profile

    @property
    def last_applied(self) -> int:
        return self._applied

    def next_sequence(self) -> int:
        """Issue the sequence number for a newly accepted operation."""
        self._issued += 1
        return self._issued

    def apply(self, sequence: int, profile: Profile | None) -> bool:
        """Replace the snapshot if ``sequence`` is newer than the last write.

        Returns:
            True if the snapshot was replaced, False if the result was stale
        """
        if sequence <= self._applied:
            logger.debug(
                f"Discarding stale session result seq={sequence} "
                f"(last applied={self._applied})"
            )
            return False
        self._applied = sequence
        self._publish(SessionSnapshot(profile=profile, loading=False))
        return True

    def clear(self) -> None:
        """Sign the UI out. Always wins over anything already in flight."""
        self.apply(self.next_sequence(), None)

    def mark_ready(self) -> None:
        """Drop the loading flag without touching the profile."""
        if self._snapshot.loading:
            self._publish(self._snapshot.model_copy(update={"loading": False}))

    def subscribe(self) -> asyncio.Queue[SessionSnapshot]:
        """Subscribe to snapshot changes.

        Returns a queue pre-populated with the current snapshot.
        """
        queue: asyncio.Queue[SessionSnapshot] = asyncio.Queue(maxsize=self._queue_size)
        queue.put_nowait(self._snapshot)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[SessionSnapshot]) -> None:
        """Remove a subscriber queue. Idempotent."""
        try:
            self._subscribers.remove(queue)
        except ValueError:
            pass

    def _publish(self, snapshot: SessionSnapshot) -> None:
        self._snapshot = snapshot
        for queue in self._subscribers:
            try:
                queue.put_nowait(snapshot)
            except asyncio.QueueFull:
                pass  # Slow subscriber; it can re-read ``snapshot``
