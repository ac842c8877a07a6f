"""Pending / fulfilled / rejected bookkeeping around remote calls."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from pydantic import ValidationError as SchemaError

from momentum.application.store import DomainStore
from momentum.core.validation import ValidationError
from momentum.domain.state import RequestKind
from momentum.infrastructure.api_client import MomentumApiError

log = logging.getLogger(__name__)

T = TypeVar("T")

# Failures an operation turns into a slice error. Anything else is a bug and
# propagates to the caller.
HANDLED_ERRORS = (MomentumApiError, SchemaError, ValidationError)


@dataclass(frozen=True)
class Fulfilled(Generic[T]):
    payload: T
    applied: bool = True

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    error: str
    applied: bool = True

    @property
    def ok(self) -> bool:
        return False


Settlement = Union[Fulfilled[T], Rejected]


@dataclass
class _Batch:
    """Calls of one family that overlapped in time.

    ``errors`` holds the latest unanswered rejection per state key. A newer
    dispatch or an applied success for the same key removes its entry.
    """

    in_flight: int = 0
    fulfilled: bool = False
    errors: dict[str | None, str] = field(default_factory=dict)

    def record_error(self, key: str | None, message: str) -> None:
        self.errors.pop(key, None)
        self.errors[key] = message

    def latest_error(self) -> str | None:
        return next(reversed(self.errors.values()), None)


def describe_failure(message: str, exc: BaseException) -> str:
    if isinstance(exc, ValidationError):
        detail: str | None = str(exc)
    else:
        detail = getattr(exc, "detail", None)
    return f"{message}: {detail}" if detail else message


class RequestLifecycleTracker:
    """Run remote calls and record their lifecycle in the store.

    ``kind`` selects the loading flag a call drives. ``key`` names the piece
    of state the call writes (``"blocker_page"``, ``"reports:team:core"``);
    each dispatch for a key gets the next sequence number for it.

    With ``stale_guard`` on, a settlement older than the last one applied for
    its key is dropped, and a family's flag stays ``pending`` until every
    overlapping call has settled. The family then ends ``rejected`` only if a
    rejection is left that no later call for its key has answered. With the
    guard off, settlements are applied as they arrive and the last to settle
    wins.

    Sequence numbers for a key are forgotten once no call for it is in flight.
    """

    def __init__(self, store: DomainStore, *, stale_guard: bool = True) -> None:
        self._store = store
        self._stale_guard = stale_guard
        self._dispatched: dict[str, int] = {}
        self._applied: dict[str, int] = {}
        self._live: dict[str, int] = {}
        self._batches: dict[RequestKind, _Batch] = {}

    @property
    def stale_guard(self) -> bool:
        return self._stale_guard

    def in_flight(self, kind: RequestKind) -> int:
        batch = self._batches.get(kind)
        return batch.in_flight if batch else 0

    def tracked_keys(self) -> set[str]:
        """State keys the tracker still holds sequence numbers for."""

        return set(self._dispatched) | set(self._applied)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _dispatch(self, kind: RequestKind, key: str | None) -> int:
        batch = self._batches.get(kind)
        if batch is None or batch.in_flight == 0:
            batch = self._batches[kind] = _Batch()
        batch.in_flight += 1
        batch.errors.pop(key, None)
        self._store.mark_pending(kind)
        if key is None:
            return 0
        self._live[key] = self._live.get(key, 0) + 1
        seq = self._dispatched.get(key, 0) + 1
        self._dispatched[key] = seq
        return seq

    def _is_stale(self, key: str | None, seq: int) -> bool:
        return self._stale_guard and key is not None and seq < self._applied.get(key, 0)

    def _mark_applied(self, key: str | None, seq: int) -> None:
        if key is not None:
            self._applied[key] = max(seq, self._applied.get(key, 0))

    def _release(self, key: str | None) -> None:
        if key is None:
            return
        remaining = self._live.get(key, 0) - 1
        if remaining > 0:
            self._live[key] = remaining
            return
        self._live.pop(key, None)
        self._dispatched.pop(key, None)
        self._applied.pop(key, None)

    def _settle(
        self,
        kind: RequestKind,
        key: str | None,
        *,
        error: str | None = None,
        fulfilled: bool = False,
    ) -> None:
        self._release(key)
        batch = self._batches[kind]
        batch.in_flight -= 1
        answered = False
        if error is not None:
            batch.record_error(key, error)
        elif fulfilled:
            answered = batch.errors.pop(key, None) is not None
            batch.fulfilled = True

        if not self._stale_guard:
            if error is not None:
                self._store.mark_rejected(kind, error)
            elif fulfilled:
                self._store.mark_fulfilled(kind)
            elif batch.in_flight == 0:
                self._store.mark_idle(kind)
            return

        remaining = batch.latest_error()
        if batch.in_flight > 0:
            if error is not None:
                self._store.mark_rejected(kind, error, settled=False)
            elif answered:
                if remaining is None:
                    self._store.mark_pending(kind)
                else:
                    self._store.mark_rejected(kind, remaining, settled=False)
            return
        if remaining is not None:
            self._store.mark_rejected(kind, remaining)
        elif batch.fulfilled:
            self._store.mark_fulfilled(kind, clear_error=answered)
        else:
            self._store.mark_idle(kind)

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def run(
        self,
        kind: RequestKind,
        call: Callable[[], Awaitable[T]],
        *,
        failure_message: str,
        key: str | None = None,
        reduce: Callable[[T], Any] | None = None,
        on_reject: Callable[[str], Any] | None = None,
    ) -> Settlement[T]:
        seq = self._dispatch(kind, key)
        try:
            payload = await call()
        except HANDLED_ERRORS as exc:
            message = describe_failure(failure_message, exc)
            log.warning("%s (%s): %s", failure_message, key or kind.value, exc)
            if self._is_stale(key, seq):
                log.debug("Dropping rejection for %s #%d behind an applied settlement", key, seq)
                self._settle(kind, key)
                return Rejected(message, applied=False)
            self._mark_applied(key, seq)
            self._settle(kind, key, error=message)
            if on_reject is not None:
                on_reject(message)
            return Rejected(message)
        except BaseException:
            # Cancellation or an unexpected error: nothing is written.
            self._settle(kind, key)
            raise

        if self._is_stale(key, seq):
            log.info("Dropping stale %s response #%d (last applied #%d)", key, seq, self._applied[key])
            self._settle(kind, key)
            return Fulfilled(payload, applied=False)

        self._mark_applied(key, seq)
        if reduce is not None:
            reduce(payload)
        self._settle(kind, key, fulfilled=True)
        return Fulfilled(payload)
