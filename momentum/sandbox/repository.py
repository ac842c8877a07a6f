"""In-memory persistence for the reference backend."""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from momentum.core.schema import AiReport, Blocker, BlockerCreate, BlockerUpdate, ProfileUpdate, TeamMember, User
from momentum.core.validation import validate_blocker_update, validate_profile_update

Clock = Callable[[], datetime]
ReportKey = tuple[str, str, str, str]

DEMO_TEAM = "core"
MANAGER_TOKEN = "demo-manager-token"
MEMBER_TOKEN = "demo-member-token"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BackendRepository(Protocol):
    """Persistence contract for the reference backend."""

    def now(self) -> datetime: ...

    def add_member(self, member: TeamMember, *, token: str | None = None) -> User: ...

    def user_for_token(self, token: str) -> User | None: ...

    def rotate_token(self, token: str) -> str: ...

    def get_member(self, member_uid: str) -> TeamMember | None: ...

    def list_team_members(self, team: str) -> list[TeamMember]: ...

    def update_member(self, member_uid: str, changes: ProfileUpdate) -> User: ...

    def add_blocker(self, blocker: Blocker) -> None: ...

    def get_blocker(self, blocker_uid: str) -> Blocker | None: ...

    def list_blockers(
        self,
        *,
        member_uid: str | None = None,
        team: str | None = None,
        category: str | None = None,
        severity: str | None = None,
        status: str | None = None,
    ) -> list[Blocker]: ...

    def create_blocker(self, member_uid: str, payload: BlockerCreate) -> Blocker: ...

    def update_blocker(self, blocker_uid: str, changes: BlockerUpdate) -> Blocker: ...

    def find_report(self, key: ReportKey) -> AiReport | None: ...

    def save_report(self, key: ReportKey, report: AiReport) -> None: ...

    def get_report(self, report_uid: str) -> AiReport | None: ...

    def list_reports(
        self, *, report_type: str, target_member: str | None = None, target_team: str | None = None
    ) -> list[AiReport]: ...

    def next_id(self, prefix: str) -> str: ...

    def reset(self) -> None: ...


class InMemoryBackendRepository:
    """Simple in-memory repository for local runs and tests."""

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or _utcnow
        self.reset()

    def reset(self) -> None:
        self._users: dict[str, User] = {}
        self._members: dict[str, TeamMember] = {}
        self._tokens: dict[str, str] = {}
        self._blockers: dict[str, Blocker] = {}
        self._reports: dict[str, AiReport] = {}
        self._report_keys: dict[ReportKey, str] = {}
        self._counter = 0

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # users & tokens
    # ------------------------------------------------------------------
    def add_member(self, member: TeamMember, *, token: str | None = None) -> User:
        user = User(
            uid=member.uid,
            email=member.email,
            first_name=member.first_name,
            last_name=member.last_name,
            profile_pic=member.profile_pic,
            designation=member.designation,
            team=member.team,
            is_manager=member.is_manager,
        )
        self._members[member.uid] = member
        self._users[member.uid] = user
        if token:
            self._tokens[token] = member.uid
        return user

    def user_for_token(self, token: str) -> User | None:
        uid = self._tokens.get(token)
        return self._users.get(uid) if uid else None

    def rotate_token(self, token: str) -> str:
        uid = self._tokens.pop(token)
        fresh = secrets.token_urlsafe(24)
        self._tokens[fresh] = uid
        return fresh

    def get_member(self, member_uid: str) -> TeamMember | None:
        return self._members.get(member_uid)

    def list_team_members(self, team: str) -> list[TeamMember]:
        return [member for member in self._members.values() if member.team == team]

    def update_member(self, member_uid: str, changes: ProfileUpdate) -> User:
        validate_profile_update(changes)
        fields = changes.model_dump(exclude_none=True)
        self._members[member_uid] = self._members[member_uid].model_copy(update=fields)
        fields.pop("joined_date", None)
        user = self._users[member_uid].model_copy(update=fields)
        self._users[member_uid] = user
        return user

    # ------------------------------------------------------------------
    # blockers
    # ------------------------------------------------------------------
    def add_blocker(self, blocker: Blocker) -> None:
        self._blockers[blocker.uid] = blocker

    def get_blocker(self, blocker_uid: str) -> Blocker | None:
        return self._blockers.get(blocker_uid)

    def list_blockers(
        self,
        *,
        member_uid: str | None = None,
        team: str | None = None,
        category: str | None = None,
        severity: str | None = None,
        status: str | None = None,
    ) -> list[Blocker]:
        team_uids = {member.uid for member in self.list_team_members(team)} if team else None
        items: list[Blocker] = []
        for blocker in self._blockers.values():
            owner = blocker.team_member_uid
            if member_uid and owner != member_uid:
                continue
            if team_uids is not None and owner not in team_uids:
                continue
            if category and blocker.category != category:
                continue
            if severity and blocker.severity != severity:
                continue
            if status and blocker.status != status:
                continue
            items.append(blocker)
        items.sort(key=lambda item: item.timestamp, reverse=True)
        return items

    def create_blocker(self, member_uid: str, payload: BlockerCreate) -> Blocker:
        now = self.now()
        blocker = Blocker(
            uid=self.next_id("blk"),
            team_member=member_uid,
            description=payload.description.strip(),
            category=payload.category,
            severity=payload.severity,
            timestamp=now,
            created_at=now,
            updated_at=now,
        )
        self.add_blocker(blocker)
        return blocker

    def update_blocker(self, blocker_uid: str, changes: BlockerUpdate) -> Blocker:
        current = self._blockers[blocker_uid]
        validate_blocker_update(current, changes)
        fields = changes.model_dump(exclude_none=True)
        fields["updated_at"] = self.now()
        updated = current.model_copy(update=fields)
        self._blockers[blocker_uid] = updated
        return updated

    # ------------------------------------------------------------------
    # reports
    # ------------------------------------------------------------------
    def find_report(self, key: ReportKey) -> AiReport | None:
        uid = self._report_keys.get(key)
        return self._reports.get(uid) if uid else None

    def save_report(self, key: ReportKey, report: AiReport) -> None:
        self._reports[report.uid] = report
        self._report_keys[key] = report.uid

    def get_report(self, report_uid: str) -> AiReport | None:
        return self._reports.get(report_uid)

    def list_reports(
        self, *, report_type: str, target_member: str | None = None, target_team: str | None = None
    ) -> list[AiReport]:
        matches = [
            report
            for report in self._reports.values()
            if report.report_type == report_type
            and (target_member is None or report.target_member == target_member)
            and (target_team is None or report.target_team == target_team)
        ]
        matches.reverse()
        return matches

    def next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter:05d}"


def seed_repository(repository: InMemoryBackendRepository | None = None) -> InMemoryBackendRepository:
    """Load a small demo organisation: team ``core`` with a manager and two engineers."""

    repository = repository or InMemoryBackendRepository()
    now = repository.now()

    people = [
        (TeamMember(uid="u-lead", first_name="Ada", last_name="Lovelace", email="ada@example.com",
                    designation="Engineering Manager", team=DEMO_TEAM, is_manager=True, status="Active"),
         MANAGER_TOKEN),
        (TeamMember(uid="u-dev1", first_name="Grace", last_name="Hopper", email="grace@example.com",
                    designation="Senior Engineer", team=DEMO_TEAM, status="Active"),
         MEMBER_TOKEN),
        (TeamMember(uid="u-dev2", first_name="Alan", last_name="Turing", email="alan@example.com",
                    designation="Engineer", team=DEMO_TEAM, status="Active"),
         None),
        (TeamMember(uid="u-ops1", first_name="Linus", last_name="Torvalds", email="linus@example.com",
                    designation="SRE", team="platform", status="Active"),
         None),
    ]
    for member, token in people:
        repository.add_member(member, token=token)

    blockers = [
        ("blk-seed-1", "u-dev1", "CI pipeline times out on the integration suite", "Technical", "High", "Open", 1),
        ("blk-seed-2", "u-dev1", "Sprint review clashes with the release window", "Process", "Low", "Resolved", 9),
        ("blk-seed-3", "u-dev2", "Waiting on the auth service schema change", "Dependency", "Medium", "Open", 2),
        ("blk-seed-4", "u-dev2", "No write access to the staging database", "Access", "High", "Open", 16),
        ("blk-seed-5", "u-lead", "Design review backlog", "Review", "Medium", "Ignored", 5),
        ("blk-seed-6", "u-ops1", "Disk pressure on build agents", "Infrastructure", "High", "Open", 3),
    ]
    for uid, owner, description, category, severity, status, age_days in blockers:
        stamp = now - timedelta(days=age_days)
        repository.add_blocker(
            Blocker(
                uid=uid,
                team_member=owner,
                description=description,
                category=category,
                severity=severity,
                status=status,
                timestamp=stamp,
                created_at=stamp,
            )
        )
    return repository
