"""Identity provider event listener - sequences lifecycle events into the store."""

from __future__ import annotations

import asyncio
import logging

from storefront_session.exceptions import SessionError
from storefront_session.models.identity import (
    AuthEvent,
    AuthEventType,
    Principal,
    Profile,
)
from storefront_session.session.protocols import IdentityProvider, Unsubscribe
from storefront_session.session.reconciler import ProfileReconciler
from storefront_session.session.store import SessionStore

logger = logging.getLogger(__name__)


class SessionEventListener:
    """Owns the single subscription to the identity provider.

    Provider callbacks only enqueue events. One coordinating task drains the
    queue, stamps each event with a sequence number and starts a
    reconciliation task for it, so several reconciliations can be in flight
    while results are still applied in initiation order.

    Lifecycle: ``start()`` subscribes once, ``stop()`` unsubscribes once.
    Nothing is written to the store after ``stop()``.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        reconciler: ProfileReconciler,
        store: SessionStore,
    ) -> None:
        self.provider = provider
        self.reconciler = reconciler
        self.store = store
        self._queue: asyncio.Queue[AuthEvent] = asyncio.Queue()
        self._unsubscribe: Unsubscribe | None = None
        self._coordinator: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        # principal id -> number of sign-in calls currently reconciling it
        self._sign_ins: dict[str, int] = {}
        self._started = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    async def start(self) -> None:
        """Subscribe to the provider and resolve the initial session."""
        if self._started:
            return
        self._started = True

        self._unsubscribe = self.provider.on_auth_state_change(self._handle)
        self._coordinator = asyncio.create_task(self._run())
        logger.info("Subscribed to identity provider events")

        try:
            principal = await self.provider.get_session()
        except SessionError as e:
            logger.warning(f"Initial session check failed: {e}")
            self.store.mark_ready()
            return

        if principal is None:
            self.store.mark_ready()
        else:
            self._handle(AuthEvent(type=AuthEventType.INITIAL_SESSION, principal=principal))

    async def stop(self) -> None:
        """Unsubscribe and abandon in-flight work. Idempotent."""
        if self._stopped:
            return
        self._stopped = True

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.info("Unsubscribed from identity provider events")

        pending = list(self._tasks)
        if self._coordinator is not None:
            pending.append(self._coordinator)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()

    async def join(self) -> None:
        """Wait until every queued event and its reconciliation has settled."""
        await self._queue.join()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def reconcile_now(self, principal: Principal) -> Profile:
        """Reconcile on behalf of a sign-in call and apply the result.

        While this runs, SIGNED_IN events for the same principal are left to
        it, so reconciliation errors reach the caller instead of a log.

        Raises:
            SessionError: Any reconciliation failure
        """
        sequence = self.store.next_sequence()
        self._sign_ins[principal.id] = self._sign_ins.get(principal.id, 0) + 1
        try:
            profile = await self.reconciler.reconcile(principal)
        finally:
            remaining = self._sign_ins[principal.id] - 1
            if remaining:
                self._sign_ins[principal.id] = remaining
            else:
                del self._sign_ins[principal.id]

        self.apply(sequence, profile)
        return profile

    def _handle(self, event: AuthEvent) -> None:
        if self._stopped:
            return
        self._queue.put_nowait(event)

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._dispatch(event)
            except Exception:
                logger.exception(f"Failed to dispatch {event.type.value} event")
            finally:
                self._queue.task_done()

    def _dispatch(self, event: AuthEvent) -> None:
        if self._stopped:
            return

        if event.type.clears_session:
            logger.info(f"{event.type.value}: clearing session")
            self.clear()
            return

        principal = event.principal
        if principal is None:
            logger.debug(f"{event.type.value} without a principal, ignoring")
            return

        if event.type is AuthEventType.SIGNED_IN and principal.id in self._sign_ins:
            logger.debug(f"SIGNED_IN for {principal.id} handled by in-flight sign-in")
            return

        sequence = self.store.next_sequence()
        task = asyncio.create_task(self._reconcile_event(sequence, event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _reconcile_event(self, sequence: int, event: AuthEvent) -> None:
        principal = event.principal
        try:
            profile = await self.reconciler.reconcile(principal)
        except SessionError as e:
            if event.type.is_passive:
                logger.warning(
                    f"{event.type.value} reconciliation failed for {principal.id}, "
                    f"keeping current session: {e}"
                )
            else:
                # No sign-in call owns this principal, so nobody receives the error
                logger.error(
                    f"Unowned {event.type.value} reconciliation failed for {principal.id}: {e}"
                )
            if not self._stopped:
                self.store.mark_ready()
            return
        except Exception:
            logger.exception(f"Unexpected error reconciling {principal.id}")
            return

        if self.apply(sequence, profile):
            logger.debug(f"{event.type.value} applied profile {profile.id} (seq={sequence})")

    def apply(self, sequence: int, profile: Profile) -> bool:
        """Apply a sequenced profile unless the listener has been stopped."""
        if self._stopped:
            return False
        return self.store.apply(sequence, profile)

    def clear(self) -> None:
        """Clear the session unless the listener has been stopped."""
        if self._stopped:
            return
        self.store.clear()
