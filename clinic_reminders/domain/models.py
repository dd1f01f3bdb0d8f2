from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Any

TIME_PATTERN = re.compile(r"([01]\d|2[0-3]):[0-5]\d")


class AppointmentValidationError(ValueError):
    """Raised when appointment fields are missing or malformed."""


def coerce_calendar_date(value: date | datetime | str, tz: tzinfo) -> date:
    """Reduce any accepted date input to a calendar date in the clinic timezone.

    Aware datetimes are converted to ``tz`` first; naive datetimes are taken
    as already being clinic-local.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        try:
            return date.fromisoformat(raw)
        except ValueError:
            pass
        try:
            return coerce_calendar_date(datetime.fromisoformat(raw.replace("Z", "+00:00")), tz)
        except ValueError as exc:
            raise AppointmentValidationError(f"Invalid appointment date: {value!r}") from exc
    raise AppointmentValidationError("Appointment date is required.")


@dataclass(slots=True)
class Appointment:
    appointment_id: str
    date: date
    time: str
    patient_name: str
    phone: str
    owner: str

    def calendar_event(self) -> dict[str, str]:
        return {
            "id": self.appointment_id,
            "title": f"{self.patient_name} - {self.time}",
            "start": f"{self.date.isoformat()}T{self.time}",
        }

    def to_record(self) -> dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "date": self.date.isoformat(),
            "time": self.time,
            "patient_name": self.patient_name,
            "phone": self.phone,
            "owner": self.owner,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Appointment:
        return cls(
            appointment_id=str(record["appointment_id"]),
            date=date.fromisoformat(str(record["date"])),
            time=str(record["time"]),
            patient_name=str(record["patient_name"]),
            phone=str(record["phone"]),
            owner=str(record["owner"]),
        )


def validate_appointment_fields(
    *,
    date_value: date | datetime | str | None,
    time_value: str | None,
    patient_name: str | None,
    phone: str | None,
    tz: tzinfo,
) -> dict[str, Any]:
    """Return trimmed, validated appointment fields.

    Rules:
    - date and time are required; time must be HH:MM (24h)
    - patient name and phone must be non-empty after trimming
    """
    if date_value is None or date_value == "":
        raise AppointmentValidationError("Appointment date is required.")
    calendar_date = coerce_calendar_date(date_value, tz)

    time_text = (time_value or "").strip()
    if not time_text:
        raise AppointmentValidationError("Appointment time is required.")
    if not TIME_PATTERN.fullmatch(time_text):
        raise AppointmentValidationError(f"Appointment time must be HH:MM, got {time_value!r}.")

    name = (patient_name or "").strip()
    if not name:
        raise AppointmentValidationError("Patient name is required.")

    phone_text = (phone or "").strip()
    if not phone_text:
        raise AppointmentValidationError("Patient phone is required.")

    return {
        "date": calendar_date,
        "time": time_text,
        "patient_name": name,
        "phone": phone_text,
    }
