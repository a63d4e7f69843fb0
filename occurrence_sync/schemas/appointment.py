# occurrence_sync/schemas/appointment.py
from datetime import datetime

from pydantic import BaseModel, Field

from occurrence_sync.schemas.occurrence import Sensitivity
from occurrence_sync.schemas.recurrence import Recurrence


class DeletedOccurrenceInfo(BaseModel):
    """
    Server marker for a single occurrence removed from the series.
    """

    original_start: datetime = Field(
        ..., description="As-scheduled start of the deleted occurrence."
    )


class ModifiedOccurrenceInfo(BaseModel):
    """
    Server marker for a single occurrence edited independently of the series.
    """

    item_id: str = Field(..., description="Identifier used to fetch the edited occurrence.")
    original_start: datetime = Field(
        ..., description="As-scheduled start of the occurrence before it was edited."
    )


class AppointmentDetail(BaseModel):
    """
    First-class fields of a single appointment, as returned by the store.
    """

    id: str
    start: datetime
    end: datetime
    is_all_day_event: bool = False
    is_cancelled: bool = False
    last_modified_time: datetime | None = None
    sensitivity: Sensitivity = Sensitivity.NORMAL
    subject: str | None = None
    body: str | None = Field(None, description="Plain-text body.")


class MasterAppointment(AppointmentDetail):
    """
    The recurring master: first-class fields of the first occurrence plus
    the repetition rule and the server's exception lists.

    `modified_occurrences` / `deleted_occurrences` are None when the server
    did not report them at all.
    """

    recurrence: Recurrence | None = None
    modified_occurrences: list[ModifiedOccurrenceInfo] | None = None
    deleted_occurrences: list[DeletedOccurrenceInfo] | None = None
