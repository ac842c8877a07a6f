"""Application service layer: the async operations the UI layers dispatch."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from momentum.application.lifecycle import Fulfilled, Rejected, RequestLifecycleTracker, Settlement
from momentum.application.store import DomainStore
from momentum.core.schema import (
    AiReport,
    Blocker,
    BlockerCreate,
    BlockerPage,
    BlockerQuery,
    BlockerStats,
    BlockerUpdate,
    ProfileUpdate,
    ReportPeriod,
    TeamMember,
    TokenGrant,
    User,
)
from momentum.core.stats import aggregate_blockers, count_reports_by_target, rank_members, summarize_team
from momentum.core.validation import (
    ValidationError,
    validate_blocker_create,
    validate_blocker_update,
    validate_profile_update,
)
from momentum.domain.state import (
    MemberWithStats,
    RequestKind,
    TeamOverview,
    member_context,
    my_context,
    team_context,
)
from momentum.infrastructure.api_client import MomentumApiClient

log = logging.getLogger(__name__)


@dataclass(slots=True)
class MemberDetail:
    member_uid: str
    blockers: list[Blocker]
    stats: BlockerStats
    reports: list[AiReport]


class MomentumService:
    """Coordinates remote calls, payload transforms and store writes.

    Each operation returns a :class:`Fulfilled` or :class:`Rejected`
    settlement. Failures end up in the owning slice's error field and are
    never raised to the caller.
    """

    def __init__(
        self,
        client: MomentumApiClient,
        store: DomainStore,
        *,
        tracker: RequestLifecycleTracker | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._tracker = tracker or RequestLifecycleTracker(store)
        client.set_unauthorized_handler(store.force_signed_out)

    @property
    def store(self) -> DomainStore:
        return self._store

    @property
    def tracker(self) -> RequestLifecycleTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # session
    # ------------------------------------------------------------------
    async def sign_in(self, token: str) -> Settlement[User]:
        self._store.set_token(token)
        return await self.fetch_profile()

    def sign_out(self) -> None:
        self._store.sign_out()

    async def fetch_profile(self) -> Settlement[User]:
        return await self._tracker.run(
            RequestKind.SESSION,
            self._client.get_profile,
            failure_message="Failed to fetch profile",
            key="profile",
            reduce=self._store.apply_profile,
            on_reject=lambda _: self._store.mark_unauthenticated(),
        )

    async def refresh_token(self) -> Settlement[TokenGrant]:
        return await self._tracker.run(
            RequestKind.SESSION,
            self._client.refresh_token,
            failure_message="Failed to refresh token",
            key="profile",
            reduce=self._store.apply_token_grant,
        )

    async def update_profile(self, changes: ProfileUpdate) -> Settlement[TokenGrant]:
        """Edit the signed-in user's profile and adopt the rotated token."""

        async def call() -> TokenGrant:
            user = self._store.current_user()
            if user is None:
                raise ValidationError("sign in before editing the profile")
            validate_profile_update(changes)
            return await self._client.update_profile(user.uid, changes)

        return await self._tracker.run(
            RequestKind.SESSION,
            call,
            failure_message="Failed to update profile",
            key="profile",
            reduce=self._store.apply_token_grant,
        )

    # ------------------------------------------------------------------
    # blockers
    # ------------------------------------------------------------------
    async def fetch_my_blockers(self, query: BlockerQuery | None = None) -> Settlement[BlockerPage]:
        return await self._tracker.run(
            RequestKind.BLOCKERS,
            lambda: self._client.get_my_blockers(query),
            failure_message="Failed to fetch blockers",
            key="blocker_page",
            reduce=self._store.apply_blocker_page,
        )

    async def fetch_my_stats(self) -> Settlement[BlockerStats]:
        return await self._tracker.run(
            RequestKind.BLOCKERS,
            self._client.get_my_stats,
            failure_message="Failed to fetch stats",
            key="blocker_stats",
            reduce=self._store.apply_stats,
        )

    async def fetch_team_blockers(self, team: str, query: BlockerQuery | None = None) -> Settlement[BlockerPage]:
        return await self._tracker.run(
            RequestKind.BLOCKERS,
            lambda: self._client.get_team_blockers(team, query),
            failure_message="Failed to fetch team blockers",
            key="blocker_page",
            reduce=self._store.apply_blocker_page,
        )

    async def fetch_team_stats(self, team: str) -> Settlement[BlockerStats]:
        return await self._tracker.run(
            RequestKind.BLOCKERS,
            lambda: self._client.get_team_stats(team),
            failure_message="Failed to fetch team stats",
            key="blocker_stats",
            reduce=self._store.apply_stats,
        )

    async def fetch_member_blockers(
        self, member_uid: str, query: BlockerQuery | None = None
    ) -> Settlement[BlockerPage]:
        return await self._tracker.run(
            RequestKind.BLOCKERS,
            lambda: self._client.get_member_blockers(member_uid, query),
            failure_message="Failed to fetch member blockers",
            key="blocker_page",
            reduce=self._store.apply_blocker_page,
        )

    async def create_blocker(self, payload: BlockerCreate) -> Settlement[Blocker]:
        async def call() -> Blocker:
            validate_blocker_create(payload)
            return await self._client.create_blocker(payload)

        return await self._tracker.run(
            RequestKind.BLOCKER_WRITE,
            call,
            failure_message="Failed to create blocker",
            reduce=self._store.prepend_blocker,
        )

    async def update_blocker(self, blocker_uid: str, changes: BlockerUpdate) -> Settlement[Blocker]:
        async def call() -> Blocker:
            known = self._store.find_blocker(blocker_uid)
            if known is not None:
                validate_blocker_update(known, changes)
            return await self._client.update_blocker(blocker_uid, changes)

        return await self._tracker.run(
            RequestKind.BLOCKER_WRITE,
            call,
            failure_message="Failed to update blocker",
            key=f"blocker:{blocker_uid}",
            reduce=self._store.replace_blocker,
        )

    # ------------------------------------------------------------------
    # AI reports
    # ------------------------------------------------------------------
    async def fetch_my_reports(self) -> Settlement[list[AiReport]]:
        return await self._tracker.run(
            RequestKind.REPORTS,
            self._client.list_my_reports,
            failure_message="Failed to fetch reports",
            key=f"reports:{my_context()}",
            reduce=lambda reports: self._store.apply_report_list(my_context(), reports),
        )

    async def fetch_team_reports(self, team: str) -> Settlement[list[AiReport]]:
        return await self._tracker.run(
            RequestKind.REPORTS,
            lambda: self._client.list_team_reports(team),
            failure_message="Failed to fetch team reports",
            key=f"reports:{team_context(team)}",
            reduce=lambda reports: self._store.apply_report_list(team_context(team), reports),
        )

    async def fetch_member_reports(self, member_uid: str) -> Settlement[list[AiReport]]:
        return await self._tracker.run(
            RequestKind.REPORTS,
            lambda: self._client.list_member_reports(member_uid),
            failure_message="Failed to fetch member reports",
            key=f"reports:{member_context(member_uid)}",
            reduce=lambda reports: self._store.apply_report_list(member_context(member_uid), reports),
        )

    async def fetch_report_by_id(self, report_uid: str) -> Settlement[AiReport]:
        return await self._tracker.run(
            RequestKind.REPORTS,
            lambda: self._client.get_report(report_uid),
            failure_message="Failed to fetch report",
            key="current_report",
            reduce=self._store.set_current_report,
        )

    async def generate_my_report(self, period: ReportPeriod = "weekly") -> Settlement[AiReport]:
        return await self._generate(
            my_context(), lambda: self._client.generate_my_report(period), "Failed to generate report"
        )

    async def generate_member_report(self, member_uid: str, period: ReportPeriod = "weekly") -> Settlement[AiReport]:
        return await self._generate(
            member_context(member_uid),
            lambda: self._client.generate_member_report(member_uid, period),
            "Failed to generate member report",
        )

    async def generate_team_report(self, team: str, period: ReportPeriod = "weekly") -> Settlement[AiReport]:
        return await self._generate(
            team_context(team),
            lambda: self._client.generate_team_report(team, period),
            "Failed to generate team report",
        )

    async def _generate(
        self, context: str, call: Callable[[], Awaitable[AiReport]], failure_message: str
    ) -> Settlement[AiReport]:
        def reduce(report: AiReport) -> None:
            outcome = self._store.apply_generated_report(context, report)
            log.info("Report %s %s in %s cache", report.uid, outcome.action.value, context)

        return await self._tracker.run(
            RequestKind.REPORT_GENERATION,
            call,
            failure_message=failure_message,
            key=f"generate:{context}",
            reduce=reduce,
        )

    # ------------------------------------------------------------------
    # fan-out views
    # ------------------------------------------------------------------
    async def load_team_overview(self, team: str, *, limit: int = 100) -> Settlement[TeamOverview]:
        """Fetch the roster, then one blocker page per member, and join them.

        A member whose fetch fails keeps the record stored by the previous
        overview (or appears without stats if there is none); the batch as a
        whole only fails when the roster cannot be loaded.
        Report counts come from the member report caches, without extra
        requests.
        """

        query = BlockerQuery(limit=limit)

        async def member_entry(member: TeamMember) -> MemberWithStats:
            page = await self._client.get_member_blockers(member.uid, query)
            return MemberWithStats(member=member, stats=aggregate_blockers(page.blockers))

        async def call() -> TeamOverview:
            members = await self._client.list_team_members(team)
            results = await asyncio.gather(*(member_entry(m) for m in members), return_exceptions=True)

            entries: list[MemberWithStats] = []
            for member, result in zip(members, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    log.warning("Stats fetch failed for member %s: %s", member.uid, result)
                    previous = self._store.member_stats(member.uid)
                    entries.append(previous if previous is not None else MemberWithStats(member=member))
                else:
                    entries.append(result)

            ranked = rank_members(entries)
            cached = [report for m in members for report in self._store.reports(member_context(m.uid))]
            counts = count_reports_by_target(cached)
            return TeamOverview(
                team=team,
                members=ranked,
                summary=summarize_team(ranked),
                report_counts={m.uid: counts.get(m.uid, 0) for m in members},
            )

        return await self._tracker.run(
            RequestKind.TEAM_OVERVIEW,
            call,
            failure_message="Failed to load team",
            key=f"team_overview:{team}",
            reduce=lambda overview: self._store.apply_member_stats(overview.members),
        )

    async def load_member_detail(self, member_uid: str, *, limit: int = 50) -> Settlement[MemberDetail]:
        async def call() -> MemberDetail:
            page, reports = await asyncio.gather(
                self._client.get_member_blockers(member_uid, BlockerQuery(limit=limit)),
                self._client.list_member_reports(member_uid),
            )
            return MemberDetail(
                member_uid=member_uid,
                blockers=list(page.blockers),
                stats=aggregate_blockers(page.blockers),
                reports=list(reports),
            )

        def reduce(detail: MemberDetail) -> None:
            self._store.apply_blocker_page(BlockerPage(blockers=detail.blockers, total=len(detail.blockers)))
            self._store.apply_stats(detail.stats)
            self._store.apply_report_list(member_context(member_uid), detail.reports)

        return await self._tracker.run(
            RequestKind.BLOCKERS,
            call,
            failure_message="Failed to load member",
            key="blocker_page",
            reduce=reduce,
        )

    # ------------------------------------------------------------------
    # local state helpers
    # ------------------------------------------------------------------
    def clear_current_report(self) -> None:
        self._store.clear_current_report()

    def clear_errors(self) -> None:
        self._store.clear_session_error()
        self._store.clear_blockers_error()
        self._store.clear_reports_error()


__all__ = ["Fulfilled", "MemberDetail", "MomentumService", "Rejected"]
