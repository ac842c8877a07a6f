"""Domain entities held by the client-side store."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from momentum.core.schema import AiReport, Blocker, BlockerStats, TeamMember, User

Phase = Literal["idle", "pending", "fulfilled", "rejected"]


class RequestKind(str, Enum):
    """Operation families; each owns one loading flag."""

    SESSION = "session"
    BLOCKERS = "blockers"
    BLOCKER_WRITE = "blocker_write"
    TEAM_OVERVIEW = "team_overview"
    REPORTS = "reports"
    REPORT_GENERATION = "report_generation"


SESSION_KINDS = (RequestKind.SESSION,)
BLOCKER_KINDS = (RequestKind.BLOCKERS, RequestKind.BLOCKER_WRITE, RequestKind.TEAM_OVERVIEW)
REPORT_KINDS = (RequestKind.REPORTS, RequestKind.REPORT_GENERATION)


@dataclass(slots=True)
class RequestState:
    """Lifecycle of the most recent call of one operation family."""

    phase: Phase = "idle"
    error: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.phase == "pending"


def _requests(kinds: tuple[RequestKind, ...]) -> dict[RequestKind, RequestState]:
    return {kind: RequestState() for kind in kinds}


@dataclass(slots=True)
class MemberWithStats:
    member: TeamMember
    stats: BlockerStats | None = None


@dataclass(slots=True)
class TeamSummary:
    total_open: int = 0
    total_high: int = 0
    members_needing_attention: int = 0


@dataclass(slots=True)
class TeamOverview:
    team: str
    members: list[MemberWithStats] = field(default_factory=list)
    summary: TeamSummary = field(default_factory=TeamSummary)
    # member uid -> individual reports already cached for that member
    report_counts: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class SessionState:
    user: User | None = None
    token: str | None = None
    is_authenticated: bool = False
    error: str | None = None
    requests: dict[RequestKind, RequestState] = field(default_factory=lambda: _requests(SESSION_KINDS))


@dataclass(slots=True)
class BlockersState:
    blockers: list[Blocker] = field(default_factory=list)
    total: int = 0
    stats: BlockerStats | None = None
    member_stats: dict[str, MemberWithStats] = field(default_factory=dict)
    error: str | None = None
    requests: dict[RequestKind, RequestState] = field(default_factory=lambda: _requests(BLOCKER_KINDS))


@dataclass(slots=True)
class AiReportsState:
    caches: dict[str, list[AiReport]] = field(default_factory=dict)
    current_report: AiReport | None = None
    error: str | None = None
    requests: dict[RequestKind, RequestState] = field(default_factory=lambda: _requests(REPORT_KINDS))


def my_context() -> str:
    return "my"


def team_context(team: str) -> str:
    return f"team:{team}"


def member_context(member_uid: str) -> str:
    return f"member:{member_uid}"
