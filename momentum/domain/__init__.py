"""Domain layer definitions."""

from .state import (
    AiReportsState,
    BlockersState,
    MemberWithStats,
    RequestKind,
    RequestState,
    SessionState,
    TeamOverview,
    TeamSummary,
    member_context,
    my_context,
    team_context,
)

__all__ = [
    "AiReportsState",
    "BlockersState",
    "MemberWithStats",
    "RequestKind",
    "RequestState",
    "SessionState",
    "TeamOverview",
    "TeamSummary",
    "member_context",
    "my_context",
    "team_context",
]
