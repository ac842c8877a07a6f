from __future__ import annotations

from dataclasses import dataclass

from fastapi import APIRouter, Depends, HTTPException, Query

from momentum.core.schema import (
    Blocker,
    BlockerCategory,
    BlockerCreate,
    BlockerSeverity,
    BlockerStatus,
    BlockerUpdate,
    User,
)
from momentum.core.validation import ValidationError
from momentum.sandbox.dependencies import current_user, ensure_member_access, ensure_team_access, get_repository
from momentum.sandbox.digest import blocker_stats
from momentum.sandbox.repository import BackendRepository

router = APIRouter(prefix="/blockers", tags=["blockers"])


@dataclass(slots=True)
class BlockerFilters:
    category: str | None = None
    severity: str | None = None
    status: str | None = None
    limit: int | None = None
    page: int = 1

    def as_kwargs(self) -> dict[str, str | None]:
        return {"category": self.category, "severity": self.severity, "status": self.status}

    def paginate(self, items: list[Blocker]) -> dict:
        total = len(items)
        if self.limit is not None:
            start = (self.page - 1) * self.limit
            items = items[start : start + self.limit]
        return {"blockers": [item.to_wire() for item in items], "total": total}


def blocker_filters(
    category: BlockerCategory | None = Query(default=None),
    severity: BlockerSeverity | None = Query(default=None),
    status: BlockerStatus | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    page: int = Query(default=1, ge=1),
) -> BlockerFilters:
    return BlockerFilters(category=category, severity=severity, status=status, limit=limit, page=page)


@router.get("/my")
async def list_my_blockers(
    filters: BlockerFilters = Depends(blocker_filters),
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    return filters.paginate(repository.list_blockers(member_uid=user.uid, **filters.as_kwargs()))


@router.get("/my/stats")
async def get_my_stats(
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    return blocker_stats(repository.list_blockers(member_uid=user.uid), repository.now()).to_wire()


@router.get("/team/{team}")
async def list_team_blockers(
    team: str,
    filters: BlockerFilters = Depends(blocker_filters),
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    ensure_team_access(user, team)
    return filters.paginate(repository.list_blockers(team=team, **filters.as_kwargs()))


@router.get("/team/{team}/stats")
async def get_team_stats(
    team: str,
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    ensure_team_access(user, team)
    return blocker_stats(repository.list_blockers(team=team), repository.now()).to_wire()


@router.get("/member/{member_uid}")
async def list_member_blockers(
    member_uid: str,
    filters: BlockerFilters = Depends(blocker_filters),
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    ensure_member_access(user, member_uid, repository)
    return filters.paginate(repository.list_blockers(member_uid=member_uid, **filters.as_kwargs()))


@router.post("", status_code=201)
async def create_blocker(
    payload: BlockerCreate,
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    owner = payload.team_member_uid or user.uid
    ensure_member_access(user, owner, repository)
    if not payload.description.strip():
        raise HTTPException(status_code=422, detail="description cannot be empty")
    return repository.create_blocker(owner, payload).to_wire()


@router.patch("/{blocker_uid}")
async def update_blocker(
    blocker_uid: str,
    changes: BlockerUpdate,
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    blocker = repository.get_blocker(blocker_uid)
    if blocker is None:
        raise HTTPException(status_code=404, detail="blocker not found")
    ensure_member_access(user, blocker.team_member_uid, repository)
    try:
        updated = repository.update_blocker(blocker_uid, changes)
    except ValidationError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return updated.to_wire()
