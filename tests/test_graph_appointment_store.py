# tests/test_graph_appointment_store.py
from datetime import date, datetime, timezone

import pytest

from occurrence_sync.schemas.occurrence import Sensitivity
from occurrence_sync.schemas.recurrence import (
    DayOfWeek,
    MonthlyPattern,
    RangeType,
    RelativeYearlyPattern,
    UnsupportedPattern,
    WeekIndex,
    WeeklyPattern,
)
from occurrence_sync.services.appointment_store import (
    GraphAppointmentStore,
    StoreUnavailable,
)
from occurrence_sync.services.graph_client import GraphClientError
from occurrence_sync.services.occurrence_expander import OccurrenceExpander


class FakeGraphClient:
    """
    Simple stub for GraphClient serving payloads by request path.
    """

    def __init__(self, payloads=None, error=None):
        self.payloads = payloads or {}
        self.error = error
        self.calls = []

    async def get_json(self, path, params=None, headers=None):
        self.calls.append({"path": path, "params": params, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.payloads[path]


MASTER_PATH = "/beta/users/org@test.com/events/master-1"

MASTER_PAYLOAD = {
    "id": "master-1",
    "subject": "Team sync",
    "body": {"contentType": "text", "content": "Weekly planning"},
    "start": {"dateTime": "2024-01-01T09:00:00.0000000", "timeZone": "UTC"},
    "end": {"dateTime": "2024-01-01T10:00:00.0000000", "timeZone": "UTC"},
    "isAllDay": False,
    "isCancelled": False,
    "lastModifiedDateTime": "2023-12-20T08:15:30.1234567Z",
    "sensitivity": "private",
    "recurrence": {
        "pattern": {
            "type": "weekly",
            "interval": 1,
            "month": 0,
            "dayOfMonth": 0,
            "daysOfWeek": ["monday", "wednesday"],
            "firstDayOfWeek": "sunday",
            "index": "first",
        },
        "range": {
            "type": "endDate",
            "startDate": "2024-01-01",
            "endDate": "2024-01-31",
            "recurrenceTimeZone": "UTC",
            "numberOfOccurrences": 0,
        },
    },
    "cancelledOccurrences": ["OID.AAMkAGI2TG93AAA=.2024-01-08"],
    "exceptionOccurrences": [
        {"id": "AAMkAGI2THVSAAA=", "originalStart": "2024-01-10T09:00:00Z"}
    ],
}


@pytest.mark.asyncio
async def test_bind_master_maps_graph_event():
    client = FakeGraphClient({MASTER_PATH: MASTER_PAYLOAD})
    store = GraphAppointmentStore(client, user_id="org@test.com")

    master = await store.bind_master("master-1")

    assert master.id == "master-1"
    assert master.start == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    assert master.end == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert master.last_modified_time == datetime(
        2023, 12, 20, 8, 15, 30, 123456, tzinfo=timezone.utc
    )
    assert master.sensitivity == Sensitivity.PRIVATE
    assert master.subject == "Team sync"
    assert master.body == "Weekly planning"

    pattern = master.recurrence.pattern
    assert isinstance(pattern, WeeklyPattern)
    assert pattern.days_of_week == [DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY]
    assert master.recurrence.range.type == RangeType.END_DATE
    assert master.recurrence.range.end_date == date(2024, 1, 31)

    assert [d.original_start for d in master.deleted_occurrences] == [
        datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc)
    ]
    assert [(m.item_id, m.original_start) for m in master.modified_occurrences] == [
        ("AAMkAGI2THVSAAA=", datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc))
    ]


@pytest.mark.asyncio
async def test_bind_master_requests_utc_text_and_exceptions():
    client = FakeGraphClient({MASTER_PATH: MASTER_PAYLOAD})
    store = GraphAppointmentStore(client, user_id="org@test.com")

    await store.bind_master("master-1")

    call = client.calls[0]
    assert call["path"] == MASTER_PATH
    assert "recurrence" in call["params"]["$select"]
    assert "cancelledOccurrences" in call["params"]["$select"]
    assert call["params"]["$expand"].startswith("exceptionOccurrences")
    prefer = call["headers"]["Prefer"]
    assert 'outlook.timezone="UTC"' in prefer
    assert 'outlook.body-content-type="text"' in prefer


@pytest.mark.asyncio
async def test_bind_master_without_exception_lists():
    payload = {
        k: v
        for k, v in MASTER_PAYLOAD.items()
        if k not in ("cancelledOccurrences", "exceptionOccurrences")
    }
    store = GraphAppointmentStore(FakeGraphClient({MASTER_PATH: payload}), "org@test.com")

    master = await store.bind_master("master-1")

    assert master.deleted_occurrences is None
    assert master.modified_occurrences is None


@pytest.mark.asyncio
async def test_bind_master_maps_pattern_kinds():
    payload = dict(MASTER_PAYLOAD)
    payload["recurrence"] = {
        "pattern": {"type": "absoluteMonthly", "interval": 2, "dayOfMonth": 31},
        "range": {
            "type": "numbered",
            "startDate": "2024-01-31",
            "endDate": "0001-01-01",
            "numberOfOccurrences": 6,
        },
    }
    store = GraphAppointmentStore(FakeGraphClient({MASTER_PATH: payload}), "org@test.com")

    master = await store.bind_master("master-1")

    assert master.recurrence.pattern == MonthlyPattern(interval=2, day_of_month=31)
    assert master.recurrence.range.type == RangeType.NUMBERED
    assert master.recurrence.range.number_of_occurrences == 6
    assert master.recurrence.range.end_date is None


@pytest.mark.asyncio
async def test_bind_master_maps_relative_yearly():
    payload = dict(MASTER_PAYLOAD)
    payload["recurrence"] = {
        "pattern": {
            "type": "relativeYearly",
            "interval": 1,
            "month": 5,
            "daysOfWeek": ["monday"],
            "index": "last",
        },
        "range": {"type": "noEnd", "startDate": "2024-01-01"},
    }
    store = GraphAppointmentStore(FakeGraphClient({MASTER_PATH: payload}), "org@test.com")

    master = await store.bind_master("master-1")

    assert master.recurrence.pattern == RelativeYearlyPattern(
        month=5, days_of_week=[DayOfWeek.MONDAY], index=WeekIndex.LAST
    )
    assert master.recurrence.has_end is False


@pytest.mark.asyncio
async def test_bind_master_maps_unknown_pattern_to_unsupported():
    payload = dict(MASTER_PAYLOAD)
    payload["recurrence"] = {
        "pattern": {"type": "hebrewLunarMonthly", "interval": 1},
        "range": {"type": "numbered", "startDate": "2024-01-01", "numberOfOccurrences": 3},
    }
    store = GraphAppointmentStore(FakeGraphClient({MASTER_PATH: payload}), "org@test.com")

    master = await store.bind_master("master-1")

    assert master.recurrence.pattern == UnsupportedPattern(source_type="hebrewLunarMonthly")


@pytest.mark.asyncio
async def test_bind_detail_maps_fields():
    path = "/beta/users/org@test.com/events/item-1"
    payload = {
        "id": "item-1",
        "subject": "Moved sync",
        "body": {"contentType": "text", "content": "Moved to the afternoon"},
        "start": {"dateTime": "2024-01-10T14:00:00.0000000", "timeZone": "UTC"},
        "end": {"dateTime": "2024-01-10T15:00:00.0000000", "timeZone": "UTC"},
        "isAllDay": False,
        "isCancelled": True,
        "lastModifiedDateTime": "2024-01-05T12:00:00Z",
        "sensitivity": "confidential",
    }
    client = FakeGraphClient({path: payload})
    store = GraphAppointmentStore(client, "org@test.com")

    detail = await store.bind_detail("item-1")

    assert detail.start == datetime(2024, 1, 10, 14, 0, tzinfo=timezone.utc)
    assert detail.is_cancelled is True
    assert detail.sensitivity == Sensitivity.CONFIDENTIAL
    assert detail.body == "Moved to the afternoon"
    assert "recurrence" not in client.calls[0]["params"]["$select"]


@pytest.mark.asyncio
async def test_not_found_returns_none():
    client = FakeGraphClient(error=GraphClientError("Not found", status_code=404))
    store = GraphAppointmentStore(client, "org@test.com")

    assert await store.bind_master("missing") is None
    assert await store.bind_detail("missing") is None


@pytest.mark.asyncio
async def test_graph_failure_raises_store_unavailable():
    client = FakeGraphClient(error=GraphClientError("Boom", status_code=503))
    store = GraphAppointmentStore(client, "org@test.com")

    with pytest.raises(StoreUnavailable) as exc_info:
        await store.bind_detail("item-1")

    assert isinstance(exc_info.value.__cause__, GraphClientError)


@pytest.mark.asyncio
async def test_malformed_payload_raises_store_unavailable():
    client = FakeGraphClient({MASTER_PATH: {"id": "master-1"}})
    store = GraphAppointmentStore(client, "org@test.com")

    with pytest.raises(StoreUnavailable):
        await store.bind_master("master-1")


TOKYO_MASTER_PATH = "/beta/users/org@test.com/events/tokyo-1"
TOKYO_DETAIL_PATH = "/beta/users/org@test.com/events/tokyo-edit"


def _tokyo_payloads():
    master = dict(MASTER_PAYLOAD)
    master.update(
        {
            "id": "tokyo-1",
            "start": {"dateTime": "2024-01-07T23:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2024-01-08T00:00:00.0000000", "timeZone": "UTC"},
            "recurrence": {
                "pattern": {
                    "type": "weekly",
                    "interval": 1,
                    "daysOfWeek": ["monday"],
                    "firstDayOfWeek": "sunday",
                },
                "range": {
                    "type": "endDate",
                    "startDate": "2024-01-08",
                    "endDate": "2024-01-29",
                    "recurrenceTimeZone": "Asia/Tokyo",
                },
            },
            # Local Monday 2024-01-15 in Tokyo.
            "cancelledOccurrences": ["OID.AAMkTokyo=.2024-01-15"],
            "exceptionOccurrences": [
                {"id": "tokyo-edit", "originalStart": "2024-01-21T23:00:00Z"}
            ],
        }
    )
    detail = {
        "id": "tokyo-edit",
        "subject": "Moved standup",
        "body": {"contentType": "text", "content": ""},
        "start": {"dateTime": "2024-01-22T01:00:00.0000000", "timeZone": "UTC"},
        "end": {"dateTime": "2024-01-22T02:00:00.0000000", "timeZone": "UTC"},
        "sensitivity": "normal",
    }
    return {TOKYO_MASTER_PATH: master, TOKYO_DETAIL_PATH: detail}


@pytest.mark.asyncio
async def test_cancelled_dates_are_local_to_recurrence_time_zone():
    store = GraphAppointmentStore(FakeGraphClient(_tokyo_payloads()), "org@test.com")

    master = await store.bind_master("tokyo-1")

    assert master.recurrence.range.recurrence_time_zone == "Asia/Tokyo"
    assert [d.original_start for d in master.deleted_occurrences] == [
        datetime(2024, 1, 14, 23, 0, tzinfo=timezone.utc)
    ]


@pytest.mark.asyncio
async def test_tokyo_series_expands_and_reconciles_on_local_mondays():
    client = FakeGraphClient(_tokyo_payloads())
    expander = OccurrenceExpander(GraphAppointmentStore(client, "org@test.com"))

    result = await expander.expand("tokyo-1")

    assert [o.original_start for o in result] == [
        datetime(2024, 1, d, 23, 0, tzinfo=timezone.utc) for d in (7, 14, 21, 28)
    ]
    assert [o.is_cancelled for o in result] == [False, True, False, False]
    edited = result[2]
    assert edited.subject == "Moved standup"
    assert edited.start == datetime(2024, 1, 22, 1, 0, tzinfo=timezone.utc)
    assert [c["path"] for c in client.calls] == [TOKYO_MASTER_PATH, TOKYO_DETAIL_PATH]
