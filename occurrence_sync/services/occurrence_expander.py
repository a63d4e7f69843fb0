# occurrence_sync/services/occurrence_expander.py
from __future__ import annotations

import logging
from typing import Optional

from occurrence_sync.core.config import get_settings
from occurrence_sync.schemas.appointment import MasterAppointment
from occurrence_sync.schemas.occurrence import Occurrence
from occurrence_sync.services.appointment_store import (
    AppointmentNotFound,
    AppointmentStore,
    GraphAppointmentStore,
    StoreUnavailable,
)
from occurrence_sync.services.exception_reconciler import (
    apply_deletions,
    apply_modifications,
)
from occurrence_sync.services.graph_client import get_graph_client
from occurrence_sync.services.pattern_expander import expand_pattern

logger = logging.getLogger(__name__)


def build_template(master: MasterAppointment) -> Occurrence:
    """
    Build the occurrence every expanded instance is copied from.

    Time of day and duration come from the master's start/end; descriptive
    fields are carried over unchanged.
    """
    return Occurrence(
        start=master.start,
        end=master.end,
        is_all_day_event=master.is_all_day_event,
        is_cancelled=master.is_cancelled,
        last_modified_time=master.last_modified_time,
        master_appointment_id=master.id,
        sensitivity=master.sensitivity,
        subject=master.subject,
        text=master.body,
    )


class OccurrenceExpander:
    """
    Resolves a recurring master into its concrete occurrences.

    - Reads the master (rule plus exception lists) from the store.
    - Expands the rule into the scheduled occurrences.
    - Flags deleted occurrences as cancelled.
    - Overlays edited occurrences, fetching each one from the store in order.
    """

    def __init__(self, store: AppointmentStore) -> None:
        self.store = store

    async def expand(self, master_id: str) -> list[Occurrence]:
        """
        Return the ordered occurrences of the series `master_id`.

        Series without an end, or with a pattern kind the expander does not
        handle, yield an empty list.

        Raises
        ------
        AppointmentNotFound
            If the master does not exist.
        InvalidRecurrence
            If the series' pattern parameters are malformed.
        StoreUnavailable
            If the store fails. When the failure happens while overlaying
            modified occurrences, the exception carries the occurrences
            reconciled so far as `partial_occurrences`.
        """
        master = await self.store.bind_master(master_id)
        if master is None:
            raise AppointmentNotFound(f"Recurring master {master_id} not found")

        recurrence = master.recurrence
        if recurrence is None or not recurrence.has_end:
            logger.debug("Series %s has no bounded recurrence; nothing to expand", master_id)
            return []

        template = build_template(master)
        occurrences = expand_pattern(recurrence, template)
        logger.debug("Series %s expanded into %d occurrences", master_id, len(occurrences))

        cancelled = apply_deletions(occurrences, master.deleted_occurrences)

        try:
            applied = await apply_modifications(
                occurrences, master.modified_occurrences, self.store.bind_detail
            )
        except StoreUnavailable as exc:
            exc.partial_occurrences = occurrences
            raise

        logger.debug(
            "Series %s: %d occurrences cancelled, %d modifications applied",
            master_id,
            cancelled,
            applied,
        )
        return occurrences


_occurrence_expander_instance: Optional[OccurrenceExpander] = None


def get_occurrence_expander() -> OccurrenceExpander:
    """
    Lazily construct an OccurrenceExpander backed by the shared Graph client.
    """
    global _occurrence_expander_instance
    if _occurrence_expander_instance is None:
        settings = get_settings()
        if not settings.GRAPH_USER_ID:
            raise ValueError(
                "GRAPH_USER_ID must be configured in settings to use the shared "
                "Graph appointment store."
            )
        store = GraphAppointmentStore(get_graph_client(), user_id=settings.GRAPH_USER_ID)
        _occurrence_expander_instance = OccurrenceExpander(store)
    return _occurrence_expander_instance
