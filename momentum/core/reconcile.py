"""Merge generated or re-returned AI reports into an ordered cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from momentum.core.schema import AiReport

log = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    INSERTED = "inserted"
    REPLACED = "replaced"
    IGNORED = "ignored"


@dataclass(slots=True, frozen=True)
class ReconcileOutcome:
    reports: list[AiReport]
    action: ReconcileAction
    index: int | None = None


def _find_index(cache: Sequence[AiReport], uid: str) -> int | None:
    for index, report in enumerate(cache):
        if report.uid == uid:
            return index
    return None


def reconcile_report(incoming: AiReport, cache: Sequence[AiReport]) -> ReconcileOutcome:
    """Place ``incoming`` into ``cache`` without duplicating it.

    The cache is ordered newest-first by insertion. An unknown uid is
    prepended. A known uid flagged ``is_existing`` replaces the cached entry
    at its current position. A known uid that is *not* flagged as existing
    should never come back from the server; the cache is returned unchanged.
    """

    reports = list(cache)
    index = _find_index(reports, incoming.uid)

    if index is None:
        reports.insert(0, incoming)
        return ReconcileOutcome(reports=reports, action=ReconcileAction.INSERTED, index=0)

    if incoming.is_existing:
        reports[index] = incoming
        return ReconcileOutcome(reports=reports, action=ReconcileAction.REPLACED, index=index)

    log.warning(
        "Report %s is already cached at position %d but was not flagged as existing; cache left unchanged",
        incoming.uid,
        index,
    )
    return ReconcileOutcome(reports=reports, action=ReconcileAction.IGNORED, index=index)
