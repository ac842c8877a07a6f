from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request

from momentum.core.schema import User
from momentum.sandbox.repository import BackendRepository


def get_repository(request: Request) -> BackendRepository:
    return request.app.state.repository


def bearer_token(authorization: str | None = Header(default=None)) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="not authenticated", headers={"WWW-Authenticate": "Bearer"})
    return token.strip()


def current_user(
    token: str = Depends(bearer_token),
    repository: BackendRepository = Depends(get_repository),
) -> User:
    user = repository.user_for_token(token)
    if user is None:
        raise HTTPException(status_code=401, detail="invalid token", headers={"WWW-Authenticate": "Bearer"})
    return user


def ensure_team_access(user: User, team: str) -> None:
    """Managers see their own team; everyone else only their own blockers."""
    if not (user.is_manager and user.team == team):
        raise HTTPException(status_code=403, detail="team access requires the team's manager")


def ensure_member_access(user: User, member_uid: str, repository: BackendRepository) -> None:
    if user.uid == member_uid:
        return
    member = repository.get_member(member_uid)
    if member is None:
        raise HTTPException(status_code=404, detail="member not found")
    ensure_team_access(user, member.team or "")
