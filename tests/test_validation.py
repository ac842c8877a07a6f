from __future__ import annotations

import pytest
from factories import make_blocker

from momentum.core.schema import BlockerCreate, BlockerUpdate
from momentum.core.validation import (
    ValidationError,
    validate_blocker_create,
    validate_blocker_update,
    validate_status_transition,
)


@pytest.mark.parametrize("target", ["Open", "Resolved", "Ignored"])
def test_open_blocker_can_move_anywhere(target):
    validate_status_transition("Open", target)


@pytest.mark.parametrize("current,target", [("Resolved", "Open"), ("Ignored", "Open"), ("Resolved", "Ignored")])
def test_final_statuses_cannot_change(current, target):
    with pytest.raises(ValidationError, match=f"from {current} to {target}"):
        validate_status_transition(current, target)


def test_update_rejects_blank_description():
    with pytest.raises(ValidationError):
        validate_blocker_update(make_blocker("b1"), BlockerUpdate(description="   "))


def test_update_without_status_is_allowed_on_final_blocker():
    validate_blocker_update(make_blocker("b1", status="Resolved"), BlockerUpdate(manager_notes="done"))


def test_create_rejects_whitespace_description():
    with pytest.raises(ValidationError):
        validate_blocker_create(BlockerCreate(description="  "))
