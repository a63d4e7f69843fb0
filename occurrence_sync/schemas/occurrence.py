# occurrence_sync/schemas/occurrence.py
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class Sensitivity(str, Enum):
    """
    Sensitivity levels reported by Exchange / Microsoft Graph.
    """

    NORMAL = "normal"
    PERSONAL = "personal"
    PRIVATE = "private"
    CONFIDENTIAL = "confidential"


class Occurrence(BaseModel):
    """
    One concrete instance of a recurring series.

    `original_start` is the as-scheduled start produced by pattern expansion
    and is the key used to match deleted/modified occurrence records. It
    never changes; applying a modification only moves the displayed
    `start`/`end`.
    """

    start: datetime = Field(..., description="Start of this occurrence.")
    end: datetime = Field(..., description="End of this occurrence.")
    original_start: datetime | None = Field(
        None,
        description="As-scheduled start; defaults to `start` and is never overwritten.",
    )
    is_all_day_event: bool = Field(False, description="True for all-day events.")
    is_cancelled: bool = Field(
        False,
        description=(
            "True when the server reports this occurrence as deleted, or when "
            "the modified occurrence itself is cancelled."
        ),
    )
    last_modified_time: datetime | None = Field(
        None,
        description="Last modification time, inherited from the master unless modified.",
    )
    master_appointment_id: str = Field(
        ..., description="Identifier of the recurring master this occurrence belongs to."
    )
    sensitivity: Sensitivity = Field(Sensitivity.NORMAL)
    subject: str | None = Field(None)
    text: str | None = Field(None, description="Plain-text body.")

    @model_validator(mode="after")
    def _default_original_start(self) -> "Occurrence":
        if self.original_start is None:
            self.original_start = self.start
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start
