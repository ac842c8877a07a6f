from __future__ import annotations

from momentum.core.schema import Blocker, BlockerCreate, BlockerUpdate, ProfileUpdate


class ValidationError(Exception):
    """Raised when domain validation fails."""


# Open is the only status a blocker can leave; Resolved and Ignored are final.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "Open": frozenset({"Open", "Resolved", "Ignored"}),
    "Resolved": frozenset({"Resolved"}),
    "Ignored": frozenset({"Ignored"}),
}


def validate_status_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise ValidationError(f"cannot move blocker from {current} to {target}")


def validate_blocker_update(blocker: Blocker, changes: BlockerUpdate) -> None:
    if changes.status is not None:
        validate_status_transition(blocker.status, changes.status)
    if changes.description is not None and not changes.description.strip():
        raise ValidationError("description cannot be empty")


def validate_blocker_create(payload: BlockerCreate) -> None:
    if not payload.description.strip():
        raise ValidationError("description cannot be empty")


def validate_profile_update(changes: ProfileUpdate) -> None:
    fields = changes.model_dump(exclude_none=True)
    if not fields:
        raise ValidationError("no profile fields to update")
    for name in ("first_name", "last_name"):
        if name in fields and not fields[name].strip():
            raise ValidationError(f"{name.replace('_', ' ')} cannot be empty")
