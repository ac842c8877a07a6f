from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from momentum.core.schema import Blocker, ReportPeriod, ReportType, User
from momentum.sandbox.dependencies import current_user, ensure_member_access, ensure_team_access, get_repository
from momentum.sandbox.digest import build_report, report_window
from momentum.sandbox.repository import BackendRepository

log = logging.getLogger(__name__)

router = APIRouter(prefix="/ai-reports", tags=["ai-reports"])


def _generate(
    repository: BackendRepository,
    *,
    report_type: ReportType,
    period: ReportPeriod,
    blockers: list[Blocker],
    target_member: str | None = None,
    target_team: str | None = None,
) -> dict:
    """Return the report for the current window, creating it on first request.

    A report already generated for the same target, period and window is
    returned again with ``isExisting`` set instead of being rebuilt.
    """
    now = repository.now()
    label, _, _ = report_window(period, now)
    key = (report_type, target_member or target_team or "", period, label)

    existing = repository.find_report(key)
    if existing is not None:
        log.info("Returning existing %s report %s for %s", period, existing.uid, key[1])
        return existing.model_copy(update={"is_existing": True}).to_wire()

    report = build_report(
        uid=repository.next_id("rpt"),
        report_type=report_type,
        period=period,
        blockers=blockers,
        now=now,
        target_member=target_member,
        target_team=target_team,
    )
    repository.save_report(key, report)
    return report.to_wire()


@router.post("/generate/my")
async def generate_my_report(
    period: ReportPeriod = Query(default="weekly"),
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    blockers = repository.list_blockers(member_uid=user.uid)
    return _generate(repository, report_type="individual", period=period, blockers=blockers, target_member=user.uid)


@router.post("/generate/member/{member_uid}")
async def generate_member_report(
    member_uid: str,
    period: ReportPeriod = Query(default="weekly"),
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    ensure_member_access(user, member_uid, repository)
    blockers = repository.list_blockers(member_uid=member_uid)
    return _generate(repository, report_type="individual", period=period, blockers=blockers, target_member=member_uid)


@router.post("/generate/team/{team}")
async def generate_team_report(
    team: str,
    period: ReportPeriod = Query(default="weekly"),
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    ensure_team_access(user, team)
    blockers = repository.list_blockers(team=team)
    return _generate(repository, report_type="team", period=period, blockers=blockers, target_team=team)


@router.get("/my")
async def list_my_reports(
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> list[dict]:
    return [r.to_wire() for r in repository.list_reports(report_type="individual", target_member=user.uid)]


@router.get("/team/{team}")
async def list_team_reports(
    team: str,
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> list[dict]:
    ensure_team_access(user, team)
    return [r.to_wire() for r in repository.list_reports(report_type="team", target_team=team)]


@router.get("/member/{member_uid}")
async def list_member_reports(
    member_uid: str,
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> list[dict]:
    ensure_member_access(user, member_uid, repository)
    return [r.to_wire() for r in repository.list_reports(report_type="individual", target_member=member_uid)]


@router.get("/{report_uid}")
async def get_report(
    report_uid: str,
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    report = repository.get_report(report_uid)
    if report is None:
        raise HTTPException(status_code=404, detail="report not found")
    if report.report_type == "team":
        ensure_team_access(user, report.target_team or "")
    else:
        ensure_member_access(user, report.target_member or "", repository)
    return report.to_wire()
