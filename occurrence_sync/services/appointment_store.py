# occurrence_sync/services/appointment_store.py
from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from pydantic import ValidationError

from occurrence_sync.schemas.appointment import (
    AppointmentDetail,
    DeletedOccurrenceInfo,
    MasterAppointment,
    ModifiedOccurrenceInfo,
)
from occurrence_sync.schemas.occurrence import Sensitivity
from occurrence_sync.schemas.recurrence import (
    DailyPattern,
    MonthlyPattern,
    RangeType,
    Recurrence,
    RecurrencePattern,
    RecurrenceRange,
    RelativeMonthlyPattern,
    RelativeYearlyPattern,
    UnsupportedPattern,
    WeeklyPattern,
    YearlyPattern,
)
from occurrence_sync.services.graph_client import GraphClient, GraphClientError
from occurrence_sync.services.pattern_expander import scheduled_start, series_zone

logger = logging.getLogger(__name__)


class StoreUnavailable(RuntimeError):
    """
    Raised by an AppointmentStore when an appointment cannot be retrieved.
    """


class AppointmentNotFound(StoreUnavailable):
    """
    Raised when the recurring master itself does not exist.
    """


class AppointmentStore(Protocol):
    """
    Source of appointment data for the expansion engine.

    Both methods return None when the item does not exist and raise
    StoreUnavailable for any other failure.
    """

    async def bind_master(self, master_id: str) -> Optional[MasterAppointment]:
        ...

    async def bind_detail(self, occurrence_id: str) -> Optional[AppointmentDetail]:
        ...


_DETAIL_FIELDS = (
    "subject",
    "body",
    "start",
    "end",
    "isAllDay",
    "isCancelled",
    "lastModifiedDateTime",
    "sensitivity",
)

# Graph returns up to seven fractional digits; datetime accepts six.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")

# cancelledOccurrences entries look like "OID.<master id>.<yyyy-mm-dd>"
_CANCELLED_DATE_RE = re.compile(r"\.(\d{4}-\d{2}-\d{2})$")


class GraphAppointmentStore:
    """
    AppointmentStore backed by the Microsoft Graph events API.

    - The master is read with its recurrence, the ids and original starts
      of its exception occurrences and its cancelled occurrences.
    - Timestamps are requested in UTC and bodies as plain text; recurrence
      and cancelled-occurrence dates stay local to `recurrenceTimeZone`.
    - Uses the beta endpoint, the only one exposing exceptionOccurrences
      and cancelledOccurrences.
    """

    def __init__(self, graph_client: GraphClient, user_id: str) -> None:
        """
        Parameters
        ----------
        graph_client:
            Shared Graph client instance.
        user_id:
            User ID/email of the mailbox that owns the series.
        """
        self.graph = graph_client
        self.user_id = user_id

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Prefer": 'outlook.timezone="UTC", outlook.body-content-type="text"'}

    async def bind_master(self, master_id: str) -> Optional[MasterAppointment]:
        params = {
            "$select": ",".join(_DETAIL_FIELDS + ("recurrence", "cancelledOccurrences")),
            "$expand": "exceptionOccurrences($select=id,originalStart)",
        }
        payload = await self._get_event(master_id, params)
        if payload is None:
            return None

        try:
            return self._parse_master(payload)
        except (ValidationError, KeyError, ValueError) as exc:
            raise StoreUnavailable(f"Malformed master appointment {master_id}: {exc}") from exc

    async def bind_detail(self, occurrence_id: str) -> Optional[AppointmentDetail]:
        params = {"$select": ",".join(_DETAIL_FIELDS)}
        payload = await self._get_event(occurrence_id, params)
        if payload is None:
            return None

        try:
            return AppointmentDetail(**self._detail_fields(payload))
        except (ValidationError, KeyError, ValueError) as exc:
            raise StoreUnavailable(f"Malformed appointment {occurrence_id}: {exc}") from exc

    async def _get_event(self, event_id: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        path = f"/beta/users/{self.user_id}/events/{event_id}"
        try:
            return await self.graph.get_json(path, params=params, headers=self._headers)
        except GraphClientError as exc:
            if exc.status_code == 404:
                logger.info("Event %s not found for user %s", event_id, self.user_id)
                return None
            raise StoreUnavailable(f"Could not fetch event {event_id}: {exc}") from exc

    # --- payload mapping ----------------------------------------------------

    def _parse_master(self, payload: Dict[str, Any]) -> MasterAppointment:
        fields = self._detail_fields(payload)

        recurrence_raw = payload.get("recurrence")
        recurrence = None
        if recurrence_raw:
            recurrence = Recurrence(
                pattern=self._parse_pattern(recurrence_raw["pattern"]),
                range=self._parse_range(recurrence_raw["range"]),
            )

        modified: Optional[List[ModifiedOccurrenceInfo]] = None
        if "exceptionOccurrences" in payload:
            modified = [
                ModifiedOccurrenceInfo(
                    item_id=item["id"],
                    original_start=self._parse_timestamp(item["originalStart"]),
                )
                for item in payload["exceptionOccurrences"] or []
            ]

        deleted: Optional[List[DeletedOccurrenceInfo]] = None
        if "cancelledOccurrences" in payload:
            # Cancelled dates are local to the recurrence time zone.
            time_zone = recurrence.range.recurrence_time_zone if recurrence else None
            zone = series_zone(time_zone, fields["start"])
            deleted = []
            for entry in payload["cancelledOccurrences"] or []:
                match = _CANCELLED_DATE_RE.search(entry)
                if match is None:
                    logger.warning("Ignoring unrecognised cancelled occurrence %r", entry)
                    continue
                day = date.fromisoformat(match.group(1))
                deleted.append(
                    DeletedOccurrenceInfo(
                        original_start=scheduled_start(day, fields["start"], zone)
                    )
                )

        return MasterAppointment(
            **fields,
            recurrence=recurrence,
            modified_occurrences=modified,
            deleted_occurrences=deleted,
        )

    def _detail_fields(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = payload.get("body") or {}
        last_modified = payload.get("lastModifiedDateTime")
        return {
            "id": payload["id"],
            "start": self._parse_graph_datetime(payload["start"]),
            "end": self._parse_graph_datetime(payload["end"]),
            "is_all_day_event": bool(payload.get("isAllDay", False)),
            "is_cancelled": bool(payload.get("isCancelled", False)),
            "last_modified_time": self._parse_timestamp(last_modified) if last_modified else None,
            "sensitivity": Sensitivity(payload.get("sensitivity") or "normal"),
            "subject": payload.get("subject"),
            "body": body.get("content"),
        }

    def _parse_pattern(self, raw: Dict[str, Any]) -> RecurrencePattern:
        kind = raw.get("type")
        interval = raw.get("interval", 1)
        days = raw.get("daysOfWeek") or []

        if kind == "daily":
            return DailyPattern(interval=interval)
        if kind == "weekly":
            return WeeklyPattern(
                interval=interval,
                days_of_week=days,
                first_day_of_week=raw.get("firstDayOfWeek") or "sunday",
            )
        if kind == "absoluteMonthly":
            return MonthlyPattern(interval=interval, day_of_month=raw["dayOfMonth"])
        if kind == "absoluteYearly":
            return YearlyPattern(
                interval=interval, month=raw["month"], day_of_month=raw["dayOfMonth"]
            )
        if kind == "relativeMonthly":
            return RelativeMonthlyPattern(
                interval=interval, days_of_week=days, index=raw.get("index") or "first"
            )
        if kind == "relativeYearly":
            return RelativeYearlyPattern(
                interval=interval,
                month=raw["month"],
                days_of_week=days,
                index=raw.get("index") or "first",
            )
        return UnsupportedPattern(source_type=kind)

    def _parse_range(self, raw: Dict[str, Any]) -> RecurrenceRange:
        range_type = RangeType(raw.get("type") or "noEnd")
        end_date = raw.get("endDate")
        # Graph reports "0001-01-01" as the end date of ranges that have none.
        if range_type != RangeType.END_DATE:
            end_date = None
        return RecurrenceRange(
            type=range_type,
            start_date=raw["startDate"],
            end_date=end_date,
            number_of_occurrences=raw.get("numberOfOccurrences"),
            recurrence_time_zone=raw.get("recurrenceTimeZone"),
        )

    def _parse_graph_datetime(self, dt_obj: Dict[str, Any]) -> datetime:
        """
        Converts a Graph dateTimeTimeZone object into an aware UTC datetime.

        Times are requested in UTC, so a naive value is taken as UTC.
        """
        return self._parse_timestamp(dt_obj["dateTime"])

    def _parse_timestamp(self, value: str) -> datetime:
        value = _FRACTION_RE.sub(r"\1", value.replace("Z", "+00:00"))
        dt = datetime.fromisoformat(value)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
