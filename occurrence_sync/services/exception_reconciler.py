# occurrence_sync/services/exception_reconciler.py
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, Optional

from occurrence_sync.schemas.appointment import (
    AppointmentDetail,
    DeletedOccurrenceInfo,
    ModifiedOccurrenceInfo,
)
from occurrence_sync.schemas.occurrence import Occurrence

logger = logging.getLogger(__name__)

DetailFetcher = Callable[[str], Awaitable[Optional[AppointmentDetail]]]


def apply_deletions(
    occurrences: list[Occurrence],
    deleted_occurrences: Optional[Iterable[DeletedOccurrenceInfo]],
) -> int:
    """
    Mark every occurrence whose original start matches a deletion marker as
    cancelled.

    Occurrences are never removed. Markers that match nothing are ignored,
    since the server may report deletions outside the expanded range.

    Returns
    -------
    int
        Number of occurrences flagged as cancelled.
    """
    if deleted_occurrences is None:
        return 0

    deleted_starts = {marker.original_start for marker in deleted_occurrences}

    cancelled = 0
    for occurrence in occurrences:
        if occurrence.original_start in deleted_starts:
            occurrence.is_cancelled = True
            cancelled += 1
    return cancelled


async def apply_modifications(
    occurrences: list[Occurrence],
    modified_occurrences: Optional[Iterable[ModifiedOccurrenceInfo]],
    fetch_detail: DetailFetcher,
) -> int:
    """
    Overlay edited occurrences onto the expanded series.

    Records are processed one at a time, in order. Each record is matched
    against an occurrence's `original_start`, which modifications never
    change; on a match the edited appointment is fetched and its fields
    replace the occurrence's displayed ones.

    Rules
    -----
    - The first record that matches no occurrence, or whose detail cannot
      be found, stops processing: later records are left unapplied even
      if they would match.
    - Exceptions from `fetch_detail` propagate immediately; records applied
      before the failure stay applied.

    Returns
    -------
    int
        Number of records applied.
    """
    if modified_occurrences is None:
        return 0

    applied = 0
    for record in modified_occurrences:
        occurrence = _find_by_original_start(occurrences, record)
        if occurrence is None:
            logger.warning(
                "No occurrence scheduled at %s (modified item %s); "
                "skipping remaining modifications",
                record.original_start.isoformat(),
                record.item_id,
            )
            break

        detail = await fetch_detail(record.item_id)
        if detail is None:
            logger.warning(
                "Modified item %s not found; skipping remaining modifications",
                record.item_id,
            )
            break

        occurrence.start = detail.start
        occurrence.end = detail.end
        occurrence.is_all_day_event = detail.is_all_day_event
        occurrence.is_cancelled = detail.is_cancelled
        occurrence.last_modified_time = detail.last_modified_time
        occurrence.sensitivity = detail.sensitivity
        occurrence.subject = detail.subject
        occurrence.text = detail.body
        applied += 1

    return applied


def _find_by_original_start(
    occurrences: list[Occurrence], record: ModifiedOccurrenceInfo
) -> Optional[Occurrence]:
    for occurrence in occurrences:
        if occurrence.original_start == record.original_start:
            return occurrence
    return None
