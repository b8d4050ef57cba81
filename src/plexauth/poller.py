"""The PIN poll loop.

After a PIN is shown to the user, plex.tv is asked once per interval
whether it has been approved. The loop is a small state machine::

    PENDING --token--------> FULFILLED   (token returned)
    PENDING --deadline-----> EXPIRED     (TimeoutError_ raised)
    PENDING --cancel-------> EXPIRED     (TimeoutError_ raised, cancelled=True)
    PENDING --poll error---> FAILED      (TransportError / ProtocolError re-raised)

The deadline is :func:`effective_deadline`: the caller's timeout, capped
at the 30 minutes a PIN lives on plex.tv. Each wait is cut short by the
cancel event, so cancelling returns within one tick; a request already in
flight is allowed to finish first.

A failed poll ends the loop at once; it is not logged and retried. To
try again the caller restarts the whole flow with a new PIN.

:class:`Poller` drives a :class:`~plexauth.client.PlexClient` and blocks
the calling thread. :class:`AsyncPoller` drives an
:class:`~plexauth.client.AsyncPlexClient` inside an event loop.
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Callable, Optional

from plexauth.client import AsyncPlexClient, PlexClient
from plexauth.exceptions import PlexAuthError, TimeoutError_
from plexauth.models import PIN_LIFETIME_SECONDS, Claim, PollOutcome, PollState
from plexauth.output import debug, progress


def effective_deadline(
    start: float,
    timeout: Optional[float] = None,
    ceiling: float = PIN_LIFETIME_SECONDS,
) -> float:
    """Return the monotonic time at which polling must stop.

    Args:
        start: Monotonic time the loop started.
        timeout: Caller's budget in seconds, or ``None`` for no limit of
            its own.
        ceiling: Hard cap in seconds, the lifetime of a PIN.

    Returns:
        ``start + min(timeout, ceiling)``.
    """
    hard = start + ceiling
    if timeout is None:
        return hard
    return min(start + timeout, hard)


class _PollLoop:
    """State bookkeeping shared by the blocking and async loops."""

    def __init__(
        self,
        interval: float = 1.0,
        max_duration: float = PIN_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._max_duration = max_duration
        self._clock = clock
        self._state = PollState.PENDING
        self._attempts = 0
        self._start = 0.0
        self.outcome: Optional[PollOutcome] = None

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def attempts(self) -> int:
        """Number of poll requests made by the current or last run."""
        return self._attempts

    def _begin(self, claim: Claim, timeout: Optional[float]) -> float:
        self._state = PollState.PENDING
        self._attempts = 0
        self.outcome = None
        self._start = self._clock()
        deadline = effective_deadline(self._start, timeout, self._max_duration)
        debug(
            f"Polling PIN {claim.id} every {self._interval:g}s "
            f"for up to {deadline - self._start:.0f}s"
        )
        return deadline

    def _next_wait(self, deadline: float) -> Optional[tuple[float, bool]]:
        """Seconds to wait before the next attempt and whether that wait ends at the deadline.

        Returns ``None`` when the budget is already spent. A wait that ends
        at the deadline is never followed by a poll.
        """
        remaining = deadline - self._clock()
        if remaining <= 0:
            return None
        if remaining <= self._interval:
            return remaining, True
        return self._interval, False

    def _finish(self, state: PollState, token: Optional[str] = None) -> None:
        self._state = state
        self.outcome = PollOutcome(
            state=state,
            token=token,
            attempts=self._attempts,
            elapsed=self._clock() - self._start,
        )
        debug(f"Poll loop finished: {state.value} after {self._attempts} attempt(s)")

    def _expire(self, cancelled: bool = False) -> TimeoutError_:
        self._finish(PollState.EXPIRED)
        if cancelled:
            return TimeoutError_(
                "poll_for_token: cancelled before the PIN was claimed", cancelled=True
            )
        return TimeoutError_(
            "poll_for_token: could not retrieve auth token, deadline exceeded"
        )

    def _record(self, claim: Claim, token: Optional[str]) -> bool:
        """Record one poll result; return True when the loop is done."""
        if token is None:
            debug(f"PIN {claim.id} not yet claimed (attempt {self._attempts})")
            progress(f"Waiting for authorization... ({self._clock() - self._start:.0f}s elapsed)")
            return False
        self._finish(PollState.FULFILLED, token)
        return True


class Poller(_PollLoop):
    """Blocking poll loop.

    Args:
        client: An entered :class:`~plexauth.client.PlexClient`.
        interval: Seconds to wait before each attempt.
        max_duration: Hard ceiling in seconds. Defaults to the 30-minute
            PIN lifetime; lowering it is mainly useful in tests.
        clock: Monotonic clock used for deadlines.

    Example::

        with PlexClient() as client:
            token = Poller(client).poll(claim, client_id, timeout=300)
    """

    def __init__(
        self,
        client: PlexClient,
        interval: float = 1.0,
        max_duration: float = PIN_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(interval, max_duration, clock)
        self._client = client

    def poll(
        self,
        claim: Claim,
        client_id: str,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """Wait until *claim* is approved and return the auth token.

        Args:
            claim: The PIN returned by
                :meth:`~plexauth.client.PlexClient.create_claim`.
            client_id: The identifier the PIN was created with.
            timeout: Caller's budget in seconds; capped at the ceiling.
            cancel: Event another thread may set to stop polling early.

        Returns:
            The auth token.

        Raises:
            TimeoutError_: The deadline passed or *cancel* was set.
            TransportError: A poll request failed at the network level.
            ProtocolError: plex.tv answered with an unexpected status or body.
        """
        if cancel is None:
            cancel = threading.Event()
        deadline = self._begin(claim, timeout)

        while True:
            step = self._next_wait(deadline)
            if step is None:
                raise self._expire()
            wait, final = step
            if cancel.wait(wait):
                raise self._expire(cancelled=True)
            if final or self._clock() >= deadline:
                raise self._expire()

            self._attempts += 1
            try:
                token = self._client.poll_claim(claim, client_id)
            except PlexAuthError:
                self._finish(PollState.FAILED)
                raise

            if self._record(claim, token):
                assert token is not None
                return token


class AsyncPoller(_PollLoop):
    """Async poll loop, mirroring :class:`Poller`.

    Cancellation works two ways: setting the optional :class:`asyncio.Event`
    raises :class:`~plexauth.exceptions.TimeoutError_` with
    ``cancelled=True``; cancelling the surrounding task lets
    :class:`asyncio.CancelledError` propagate after marking the loop
    expired.
    """

    def __init__(
        self,
        client: AsyncPlexClient,
        interval: float = 1.0,
        max_duration: float = PIN_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(interval, max_duration, clock)
        self._client = client

    async def poll(
        self,
        claim: Claim,
        client_id: str,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> str:
        """Async :meth:`Poller.poll`."""
        if cancel is None:
            cancel = asyncio.Event()
        deadline = self._begin(claim, timeout)

        try:
            while True:
                step = self._next_wait(deadline)
                if step is None:
                    raise self._expire()
                wait, final = step
                try:
                    await asyncio.wait_for(cancel.wait(), timeout=wait)
                except asyncio.TimeoutError:
                    pass
                else:
                    raise self._expire(cancelled=True)
                if final or self._clock() >= deadline:
                    raise self._expire()

                self._attempts += 1
                try:
                    token = await self._client.poll_claim(claim, client_id)
                except PlexAuthError:
                    self._finish(PollState.FAILED)
                    raise

                if self._record(claim, token):
                    assert token is not None
                    return token
        except asyncio.CancelledError:
            self._finish(PollState.EXPIRED)
            raise
