"""Split fetched activities into creates and updates and apply them.

Classification is by identifier membership only: an activity whose
``source_id`` is already stored is an update, everything else is a create.
Field contents are never compared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from formline.models.activities import ActivityRecord
from formline.storage.base import Storage

logger = logging.getLogger("formline.sync.reconciler")


@dataclass
class Reconciliation:
    to_create: list[ActivityRecord] = field(default_factory=list)
    to_update: list[ActivityRecord] = field(default_factory=list)


@dataclass
class ApplyResult:
    created: int = 0
    updated: int = 0


def partition(
    fetched: Sequence[ActivityRecord], existing_ids: Iterable[str]
) -> Reconciliation:
    """Classify fetched activities against the stored identifier set.

    Args:
        fetched:      Activities as produced by this run.
        existing_ids: ``source_id`` values already stored for the provider.

    Returns:
        Reconciliation preserving the input order within each list.
    """
    existing = set(existing_ids)
    result = Reconciliation()
    for activity in fetched:
        if activity.source_id in existing:
            result.to_update.append(activity)
        else:
            result.to_create.append(activity)
    return result


async def apply(reconciliation: Reconciliation, storage: Storage, source: str) -> ApplyResult:
    """Write a reconciliation: one bulk skip-duplicates insert, then single updates.

    A create racing with another writer is skipped by the store rather than
    raising, so ``created`` may be lower than ``len(to_create)``.
    """
    result = ApplyResult()
    if reconciliation.to_create:
        result.created = await storage.create_activities(reconciliation.to_create)
        skipped = len(reconciliation.to_create) - result.created
        if skipped:
            logger.info("Skipped %d activities that were created concurrently", skipped)

    for activity in reconciliation.to_update:
        if await storage.update_activity_by_source_id(activity, source):
            result.updated += 1
        else:
            logger.warning("Activity %s vanished before update", activity.source_id)
    return result
