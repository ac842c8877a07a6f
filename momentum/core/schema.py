from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

BlockerCategory = Literal[
    "Process",
    "Technical",
    "Dependency",
    "Infrastructure",
    "Communication",
    "Resource",
    "Knowledge",
    "Access",
    "External",
    "Review",
    "Customer Escalation",
    "Other",
]
BlockerSeverity = Literal["Low", "Medium", "High"]
BlockerStatus = Literal["Open", "Resolved", "Ignored"]
ReportType = Literal["individual", "team"]
ReportPeriod = Literal["weekly", "monthly"]
ActionPriority = Literal["high", "medium", "low"]
MemberStatus = Literal["Active", "Inactive"]

BLOCKER_CATEGORIES: tuple[str, ...] = get_args(BlockerCategory)
BLOCKER_SEVERITIES: tuple[str, ...] = get_args(BlockerSeverity)
BLOCKER_STATUSES: tuple[str, ...] = get_args(BlockerStatus)

# Older five-value category set still found on some member views. Kept for
# auditing only; aggregation always uses BLOCKER_CATEGORIES.
LEGACY_BLOCKER_CATEGORIES: tuple[str, ...] = ("Process", "Technical", "Dependency", "Infrastructure", "Other")


class WireModel(BaseModel):
    """Base for payloads exchanged with the API (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class User(WireModel):
    uid: str
    email: str
    first_name: str
    last_name: str
    profile_pic: str | None = None
    designation: str | None = None
    team: str | None = None
    is_manager: bool = False


class TeamMember(WireModel):
    uid: str
    first_name: str
    last_name: str
    email: str
    slack_id: str | None = None
    profile_pic: str | None = None
    designation: str | None = None
    team: str | None = None
    is_manager: bool = False
    joined_date: str | None = None
    status: MemberStatus | None = None


class Blocker(WireModel):
    uid: str
    team_member: str | TeamMember
    description: str
    category: BlockerCategory
    severity: BlockerSeverity
    timestamp: datetime
    status: BlockerStatus = "Open"
    reported_via: str = "web"
    manager_notes: str | None = None
    slack_message_id: str | None = None
    attachments: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def team_member_uid(self) -> str:
        if isinstance(self.team_member, TeamMember):
            return self.team_member.uid
        return self.team_member


class BlockerPage(WireModel):
    blockers: list[Blocker] = Field(default_factory=list)
    total: int = 0


class WeeklyTrendPoint(WireModel):
    week: str
    count: int = 0


_PARTITIONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("by_category", BLOCKER_CATEGORIES),
    ("by_severity", BLOCKER_SEVERITIES),
    ("by_status", BLOCKER_STATUSES),
)


class BlockerStats(WireModel):
    total: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    weekly_trend: list[WeeklyTrendPoint] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _fill_partitions(cls, data: Any) -> Any:
        """Every enumerated key is present, zero when the source omitted it."""

        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name, keys in _PARTITIONS:
            alias = to_camel(name)
            field_key = alias if alias in data else name
            counts = dict(data.get(field_key) or {})
            filled = {key: int(counts.pop(key, 0) or 0) for key in keys}
            filled.update(counts)
            data[field_key] = filled
        return data


class ActionItem(WireModel):
    title: str
    description: str = ""
    priority: ActionPriority = "medium"
    blocker_ref: str | None = None
    team_to_involve: str | None = None
    effort: str | None = None


class AiReport(WireModel):
    uid: str
    report_type: ReportType
    target_member: str | None = None
    target_team: str | None = None
    report_period: ReportPeriod = "weekly"
    start_date: datetime | None = None
    end_date: datetime | None = None
    summary: str = ""
    action_items: list[ActionItem] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    generated_at: datetime
    is_existing: bool = False


class TokenGrant(WireModel):
    access_token: str
    user: User


class BlockerCreate(WireModel):
    description: str = Field(min_length=1)
    category: BlockerCategory = "Technical"
    severity: BlockerSeverity = "Medium"
    team_member_uid: str | None = None


class BlockerUpdate(WireModel):
    status: BlockerStatus | None = None
    manager_notes: str | None = None
    description: str | None = None
    category: BlockerCategory | None = None
    severity: BlockerSeverity | None = None


class ProfileUpdate(WireModel):
    """Fields a user may change on their own profile. Unset fields are not sent."""

    first_name: str | None = None
    last_name: str | None = None
    profile_pic: str | None = None
    designation: str | None = None
    joined_date: str | None = None


class BlockerQuery(WireModel):
    category: BlockerCategory | None = None
    severity: BlockerSeverity | None = None
    status: BlockerStatus | None = None
    limit: int | None = Field(default=None, ge=1)
    page: int | None = Field(default=None, ge=1)

    def to_params(self) -> dict[str, Any]:
        return self.to_wire()
