"""Client-side state container for the session, blockers and AI reports."""
from __future__ import annotations

import copy
import threading
from typing import Iterable

from momentum.core.reconcile import ReconcileOutcome, reconcile_report
from momentum.core.schema import AiReport, Blocker, BlockerPage, BlockerStats, TokenGrant, User
from momentum.domain.state import (
    BLOCKER_KINDS,
    REPORT_KINDS,
    SESSION_KINDS,
    AiReportsState,
    BlockersState,
    MemberWithStats,
    RequestKind,
    RequestState,
    SessionState,
)
from momentum.infrastructure.credentials import TokenStore


class DomainStore:
    """Owns the three state slices and is their only writer.

    Reads go through selectors or deep-copied snapshots. Writes go through
    the mutation methods below, which run under one re-entrant lock, so two
    mutations never interleave even when callers share the store across
    threads.
    """

    def __init__(self, token_store: TokenStore) -> None:
        self._token_store = token_store
        self._lock = threading.RLock()
        token = token_store.load()
        self._session = SessionState(token=token, is_authenticated=bool(token))
        self._blockers = BlockersState()
        self._reports = AiReportsState()

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _slice_for(self, kind: RequestKind) -> SessionState | BlockersState | AiReportsState:
        if kind in SESSION_KINDS:
            return self._session
        if kind in BLOCKER_KINDS:
            return self._blockers
        if kind in REPORT_KINDS:
            return self._reports
        raise KeyError(kind)

    # ------------------------------------------------------------------
    # snapshots
    # ------------------------------------------------------------------
    def session_snapshot(self) -> SessionState:
        with self._lock:
            return copy.deepcopy(self._session)

    def blockers_snapshot(self) -> BlockersState:
        with self._lock:
            return copy.deepcopy(self._blockers)

    def reports_snapshot(self) -> AiReportsState:
        with self._lock:
            return copy.deepcopy(self._reports)

    # ------------------------------------------------------------------
    # selectors
    # ------------------------------------------------------------------
    def request_state(self, kind: RequestKind) -> RequestState:
        with self._lock:
            state = self._slice_for(kind).requests[kind]
            return RequestState(phase=state.phase, error=state.error)

    def is_loading(self, kind: RequestKind) -> bool:
        return self.request_state(kind).is_pending

    def current_user(self) -> User | None:
        return self._session.user

    def token(self) -> str | None:
        return self._session.token

    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    def is_manager(self) -> bool:
        user = self._session.user
        return bool(user and user.is_manager)

    def session_error(self) -> str | None:
        return self._session.error

    def blockers(self) -> tuple[Blocker, ...]:
        with self._lock:
            return tuple(self._blockers.blockers)

    def blocker_total(self) -> int:
        return self._blockers.total

    def find_blocker(self, blocker_uid: str) -> Blocker | None:
        with self._lock:
            return next((item for item in self._blockers.blockers if item.uid == blocker_uid), None)

    def blocker_stats(self) -> BlockerStats | None:
        return self._blockers.stats

    def member_stats(self, member_uid: str) -> MemberWithStats | None:
        with self._lock:
            entry = self._blockers.member_stats.get(member_uid)
            return copy.copy(entry) if entry is not None else None

    def blockers_error(self) -> str | None:
        return self._blockers.error

    def reports(self, context: str) -> tuple[AiReport, ...]:
        with self._lock:
            return tuple(self._reports.caches.get(context, ()))

    def current_report(self) -> AiReport | None:
        return self._reports.current_report

    def is_generating(self) -> bool:
        return self.is_loading(RequestKind.REPORT_GENERATION)

    def reports_error(self) -> str | None:
        return self._reports.error

    # ------------------------------------------------------------------
    # request lifecycle
    # ------------------------------------------------------------------
    def mark_pending(self, kind: RequestKind) -> None:
        with self._lock:
            owner = self._slice_for(kind)
            owner.requests[kind] = RequestState(phase="pending")
            owner.error = None

    def mark_fulfilled(self, kind: RequestKind, *, clear_error: bool = False) -> None:
        with self._lock:
            owner = self._slice_for(kind)
            owner.requests[kind] = RequestState(phase="fulfilled")
            if clear_error:
                owner.error = None

    def mark_rejected(self, kind: RequestKind, message: str, *, settled: bool = True) -> None:
        """Record ``message``; with ``settled=False`` the family stays pending."""

        with self._lock:
            owner = self._slice_for(kind)
            owner.requests[kind] = RequestState(phase="rejected" if settled else "pending", error=message)
            owner.error = message

    def mark_idle(self, kind: RequestKind) -> None:
        with self._lock:
            self._slice_for(kind).requests[kind] = RequestState()

    # ------------------------------------------------------------------
    # session mutations
    # ------------------------------------------------------------------
    def set_token(self, token: str) -> None:
        with self._lock:
            self._token_store.save(token)
            self._session.token = token
            self._session.is_authenticated = True

    def apply_profile(self, user: User) -> None:
        with self._lock:
            self._session.user = user
            self._session.is_authenticated = True

    def apply_token_grant(self, grant: TokenGrant) -> None:
        with self._lock:
            self._token_store.save(grant.access_token)
            self._session.token = grant.access_token
            self._session.user = grant.user
            self._session.is_authenticated = True

    def mark_unauthenticated(self) -> None:
        with self._lock:
            self._session.is_authenticated = False

    def sign_out(self) -> None:
        with self._lock:
            self._token_store.clear()
            self.force_signed_out()

    def force_signed_out(self) -> None:
        """Reset the session after storage has already been cleared elsewhere."""

        with self._lock:
            self._session.user = None
            self._session.token = None
            self._session.is_authenticated = False

    def clear_session_error(self) -> None:
        with self._lock:
            self._session.error = None

    # ------------------------------------------------------------------
    # blocker mutations
    # ------------------------------------------------------------------
    def apply_blocker_page(self, page: BlockerPage) -> None:
        with self._lock:
            self._blockers.blockers = list(page.blockers)
            self._blockers.total = page.total

    def apply_stats(self, stats: BlockerStats) -> None:
        with self._lock:
            self._blockers.stats = stats

    def prepend_blocker(self, blocker: Blocker) -> None:
        with self._lock:
            self._blockers.blockers.insert(0, blocker)
            self._blockers.total += 1

    def replace_blocker(self, blocker: Blocker) -> bool:
        with self._lock:
            for index, existing in enumerate(self._blockers.blockers):
                if existing.uid == blocker.uid:
                    self._blockers.blockers[index] = blocker
                    return True
            return False

    def apply_member_stats(self, entries: Iterable[MemberWithStats]) -> None:
        with self._lock:
            for entry in entries:
                self._blockers.member_stats[entry.member.uid] = copy.copy(entry)

    def clear_blockers(self) -> None:
        with self._lock:
            self._blockers.blockers = []
            self._blockers.total = 0

    def clear_blockers_error(self) -> None:
        with self._lock:
            self._blockers.error = None

    # ------------------------------------------------------------------
    # report mutations
    # ------------------------------------------------------------------
    def apply_report_list(self, context: str, reports: Iterable[AiReport]) -> None:
        with self._lock:
            self._reports.caches[context] = list(reports)

    def apply_generated_report(self, context: str, report: AiReport) -> ReconcileOutcome:
        with self._lock:
            outcome = reconcile_report(report, self._reports.caches.get(context, []))
            self._reports.caches[context] = outcome.reports
            self._reports.current_report = report
            return outcome

    def set_current_report(self, report: AiReport) -> None:
        with self._lock:
            self._reports.current_report = report

    def clear_current_report(self) -> None:
        with self._lock:
            self._reports.current_report = None

    def clear_reports_error(self) -> None:
        with self._lock:
            self._reports.error = None
