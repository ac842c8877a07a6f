from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from momentum.core.schema import ProfileUpdate, TokenGrant, User
from momentum.core.validation import ValidationError
from momentum.sandbox.dependencies import bearer_token, current_user, ensure_team_access, get_repository
from momentum.sandbox.repository import BackendRepository

router = APIRouter(prefix="/auth", tags=["auth"])
team_router = APIRouter(prefix="/team-members", tags=["team"])


@router.get("/me")
async def get_profile(user: User = Depends(current_user)) -> dict:
    return user.to_wire()


@router.post("/refresh")
async def refresh_token(
    token: str = Depends(bearer_token),
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    """Swap the presented token for a fresh one; the old token stops working."""
    fresh = repository.rotate_token(token)
    return TokenGrant(access_token=fresh, user=user).to_wire()


@team_router.get("/team/{team}")
async def list_team_members(
    team: str,
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> list[dict]:
    if user.team != team:
        ensure_team_access(user, team)
    return [member.to_wire() for member in repository.list_team_members(team)]


@team_router.patch("/{member_uid}")
async def update_member(
    member_uid: str,
    changes: ProfileUpdate,
    token: str = Depends(bearer_token),
    user: User = Depends(current_user),
    repository: BackendRepository = Depends(get_repository),
) -> dict:
    """Profile edits are self-service; the response carries a rotated token."""
    if user.uid != member_uid:
        raise HTTPException(status_code=403, detail="members can only edit their own profile")
    try:
        updated = repository.update_member(member_uid, changes)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    fresh = repository.rotate_token(token)
    return TokenGrant(access_token=fresh, user=updated).to_wire()
