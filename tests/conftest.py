# tests/conftest.py
from datetime import datetime, timezone

import pytest

from occurrence_sync.schemas.occurrence import Occurrence, Sensitivity


@pytest.fixture
def template() -> Occurrence:
    """
    Template for a one-hour series at 09:00 UTC starting 2024-01-01.
    """
    return Occurrence(
        start=datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc),
        end=datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc),
        is_all_day_event=False,
        last_modified_time=datetime(2023, 12, 20, 8, 0, tzinfo=timezone.utc),
        master_appointment_id="master-1",
        sensitivity=Sensitivity.PRIVATE,
        subject="Team sync",
        text="Weekly planning",
    )
