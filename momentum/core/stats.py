"""Blocker statistics derived on the client."""
from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from momentum.core.schema import (
    BLOCKER_CATEGORIES,
    BLOCKER_SEVERITIES,
    BLOCKER_STATUSES,
    AiReport,
    Blocker,
    BlockerStats,
)
from momentum.domain.state import MemberWithStats, TeamSummary


def empty_stats() -> BlockerStats:
    return aggregate_blockers([])


def aggregate_blockers(blockers: Sequence[Blocker]) -> BlockerStats:
    """Count ``blockers`` by category, severity and status.

    The weekly trend is left empty: only the server aggregate endpoint knows
    enough history to produce it, so locally computed stats never carry one.
    """

    by_category = {key: 0 for key in BLOCKER_CATEGORIES}
    by_severity = {key: 0 for key in BLOCKER_SEVERITIES}
    by_status = {key: 0 for key in BLOCKER_STATUSES}
    for blocker in blockers:
        by_category[blocker.category] += 1
        by_severity[blocker.severity] += 1
        by_status[blocker.status] += 1

    return BlockerStats(
        total=len(blockers),
        by_category=by_category,
        by_severity=by_severity,
        by_status=by_status,
        weekly_trend=[],
    )


def _open(entry: MemberWithStats) -> int:
    return entry.stats.by_status.get("Open", 0) if entry.stats else 0


def _high(entry: MemberWithStats) -> int:
    return entry.stats.by_severity.get("High", 0) if entry.stats else 0


def summarize_team(members: Iterable[MemberWithStats]) -> TeamSummary:
    summary = TeamSummary()
    for entry in members:
        open_count = _open(entry)
        summary.total_open += open_count
        summary.total_high += _high(entry)
        if open_count > 0:
            summary.members_needing_attention += 1
    return summary


def rank_members(members: Iterable[MemberWithStats]) -> list[MemberWithStats]:
    """Members with high-severity blockers first, then by open blockers."""

    return sorted(members, key=lambda entry: (_high(entry), _open(entry)), reverse=True)


def count_reports_by_target(reports: Iterable[AiReport]) -> dict[str, int]:
    counter: Counter[str] = Counter()
    for report in reports:
        target = report.target_member if report.report_type == "individual" else report.target_team
        if target:
            counter[target] += 1
    return dict(counter)
