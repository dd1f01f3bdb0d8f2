from __future__ import annotations

import json
import uuid
from datetime import date, datetime, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from clinic_reminders.config import DEFAULT_STORE_PATH, DEFAULT_TIMEZONE
from clinic_reminders.domain.models import Appointment, validate_appointment_fields


class AppointmentStoreError(RuntimeError):
    """Raised when the appointment store cannot be read or written."""


class AppointmentNotFoundError(AppointmentStoreError):
    """Raised when no appointment exists for an identifier."""


class AppointmentAccessError(AppointmentStoreError):
    """Raised when a user touches an appointment owned by someone else."""


DateInput = date | datetime | str


class AppointmentStore:
    """Appointments persisted as a JSON list, scoped per owning user."""

    def __init__(
        self,
        path: Path | str = DEFAULT_STORE_PATH,
        tz: tzinfo | None = None,
    ) -> None:
        self.path = Path(path)
        self.tz = tz or ZoneInfo(DEFAULT_TIMEZONE)

    def _load(self) -> dict[str, Appointment]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise AppointmentStoreError(f"Cannot read appointment store at {self.path}") from exc
        if not isinstance(payload, list):
            raise AppointmentStoreError(f"Appointment store at {self.path} must hold a JSON list")

        loaded: dict[str, Appointment] = {}
        for item in payload:
            if not isinstance(item, dict):
                continue
            try:
                appointment = Appointment.from_record(item)
            except (KeyError, ValueError) as exc:
                raise AppointmentStoreError(f"Malformed appointment record: {item!r}") from exc
            loaded[appointment.appointment_id] = appointment
        return loaded

    def _save(self, appointments: dict[str, Appointment]) -> None:
        records: list[dict[str, Any]] = [item.to_record() for item in appointments.values()]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise AppointmentStoreError(f"Cannot write appointment store at {self.path}") from exc

    @staticmethod
    def _owned(appointments: dict[str, Appointment], appointment_id: str, owner: str) -> Appointment:
        appointment = appointments.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        if appointment.owner != owner:
            raise AppointmentAccessError(f"Appointment {appointment_id} is not owned by {owner}")
        return appointment

    def find_by_date(self, target_date: date) -> list[Appointment]:
        matches = [item for item in self._load().values() if item.date == target_date]
        return sorted(matches, key=lambda item: item.time)

    def find_by_user(self, owner: str) -> list[Appointment]:
        matches = [item for item in self._load().values() if item.owner == owner]
        return sorted(matches, key=lambda item: (item.date, item.time))

    def get(self, appointment_id: str, owner: str) -> Appointment:
        return self._owned(self._load(), appointment_id, owner)

    def create(
        self,
        owner: str,
        *,
        date: DateInput,
        time: str,
        patient_name: str,
        phone: str,
    ) -> Appointment:
        fields = validate_appointment_fields(
            date_value=date,
            time_value=time,
            patient_name=patient_name,
            phone=phone,
            tz=self.tz,
        )
        appointment = Appointment(appointment_id=uuid.uuid4().hex, owner=owner, **fields)

        appointments = self._load()
        appointments[appointment.appointment_id] = appointment
        self._save(appointments)
        return appointment

    def update(
        self,
        appointment_id: str,
        owner: str,
        *,
        date: DateInput,
        time: str,
        patient_name: str,
        phone: str,
    ) -> Appointment:
        appointments = self._load()
        appointment = self._owned(appointments, appointment_id, owner)
        fields = validate_appointment_fields(
            date_value=date,
            time_value=time,
            patient_name=patient_name,
            phone=phone,
            tz=self.tz,
        )
        appointment.date = fields["date"]
        appointment.time = fields["time"]
        appointment.patient_name = fields["patient_name"]
        appointment.phone = fields["phone"]
        self._save(appointments)
        return appointment

    def delete(self, appointment_id: str, owner: str) -> None:
        appointments = self._load()
        self._owned(appointments, appointment_id, owner)
        del appointments[appointment_id]
        self._save(appointments)
