"""Server-side aggregates served by the reference backend.

Stats add a chronological ISO-week trend on top of the plain counts. Report
"generation" is a deterministic digest of the target's blockers over a
calendar window, so two calls in the same window describe the same data.
"""
from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Sequence

from momentum.core.schema import (
    ActionItem,
    AiReport,
    Blocker,
    BlockerStats,
    ReportPeriod,
    ReportType,
    WeeklyTrendPoint,
)
from momentum.core.stats import aggregate_blockers

TREND_WEEKS = 4
MAX_ACTION_ITEMS = 3

_PRIORITY = {"High": "high", "Medium": "medium", "Low": "low"}
_SEVERITY_RANK = {"High": 0, "Medium": 1, "Low": 2}
_EFFORT = {"High": "1-2 days", "Medium": "half a day", "Low": "under an hour"}
_INVOLVE = {
    "Infrastructure": "Platform",
    "Access": "IT",
    "Dependency": "Upstream owners",
    "Customer Escalation": "Support",
    "Review": "Reviewers",
}


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def iso_week_label(moment: datetime) -> str:
    year, week, _ = as_utc(moment).isocalendar()
    return f"{year}-W{week:02d}"


def weekly_trend(blockers: Sequence[Blocker], now: datetime, *, weeks: int = TREND_WEEKS) -> list[WeeklyTrendPoint]:
    """Blocker counts for the last ``weeks`` ISO weeks, oldest first."""

    labels = [iso_week_label(now - timedelta(weeks=offset)) for offset in range(weeks - 1, -1, -1)]
    counts = dict.fromkeys(labels, 0)
    for blocker in blockers:
        label = iso_week_label(blocker.timestamp)
        if label in counts:
            counts[label] += 1
    return [WeeklyTrendPoint(week=label, count=count) for label, count in counts.items()]


def blocker_stats(blockers: Sequence[Blocker], now: datetime) -> BlockerStats:
    return aggregate_blockers(blockers).model_copy(update={"weekly_trend": weekly_trend(blockers, now)})


def report_window(period: ReportPeriod, now: datetime) -> tuple[str, datetime, datetime]:
    """Return ``(label, start, end)`` of the calendar window containing ``now``."""

    now = as_utc(now)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "weekly":
        start = midnight - timedelta(days=now.weekday())
        return iso_week_label(now), start, start + timedelta(days=7)
    start = midnight.replace(day=1)
    end = (start + timedelta(days=32)).replace(day=1)
    return f"{now:%Y-%m}", start, end


def _action_items(open_blockers: Sequence[Blocker]) -> list[ActionItem]:
    ordered = sorted(open_blockers, key=lambda b: (_SEVERITY_RANK[b.severity], as_utc(b.timestamp)))
    items = [
        ActionItem(
            title=f"Resolve {blocker.category.lower()} blocker",
            description=blocker.description,
            priority=_PRIORITY[blocker.severity],
            blocker_ref=blocker.uid,
            team_to_involve=_INVOLVE.get(blocker.category),
            effort=_EFFORT[blocker.severity],
        )
        for blocker in ordered[:MAX_ACTION_ITEMS]
    ]
    if not items:
        items.append(
            ActionItem(
                title="Keep the board clear",
                description="No open blockers. Review resolved items for recurring causes.",
                priority="low",
            )
        )
    return items


def _insights(window_blockers: Sequence[Blocker], open_blockers: Sequence[Blocker]) -> list[str]:
    insights: list[str] = []
    if window_blockers:
        category, count = Counter(b.category for b in window_blockers).most_common(1)[0]
        insights.append(f"{category} accounts for {count} of {len(window_blockers)} new blockers.")
    high = sum(1 for b in open_blockers if b.severity == "High")
    if high:
        insights.append(f"{high} high-severity blocker(s) still open.")
    if not open_blockers:
        insights.append("No open blockers.")
    return insights


def build_report(
    *,
    uid: str,
    report_type: ReportType,
    period: ReportPeriod,
    blockers: Sequence[Blocker],
    now: datetime,
    target_member: str | None = None,
    target_team: str | None = None,
) -> AiReport:
    _, start, end = report_window(period, now)
    window_blockers = [b for b in blockers if start <= as_utc(b.timestamp) < end]
    open_blockers = [b for b in blockers if b.status == "Open"]
    scope = "this week" if period == "weekly" else "this month"

    summary = (
        f"{len(window_blockers)} new blocker(s) {scope}; "
        f"{len(open_blockers)} open in total between {start:%Y-%m-%d} and {end:%Y-%m-%d}."
    )
    return AiReport(
        uid=uid,
        report_type=report_type,
        target_member=target_member,
        target_team=target_team,
        report_period=period,
        start_date=start,
        end_date=end,
        summary=summary,
        action_items=_action_items(open_blockers),
        insights=_insights(window_blockers, open_blockers),
        generated_at=as_utc(now),
    )
