from __future__ import annotations

from dataclasses import dataclass

from clinic_reminders.domain.models import Appointment
from clinic_reminders.utils.phone import to_whatsapp_address

REMINDER_TEMPLATE = "Olá {patient_name}, lembrando que sua consulta é amanhã às {time}."


@dataclass(slots=True)
class OutboundReminder:
    appointment_id: str
    patient_name: str
    address: str
    message: str


def build_reminder_message(patient_name: str, time: str) -> str:
    return REMINDER_TEMPLATE.format(patient_name=patient_name, time=time)


def prepare_reminder(appointment: Appointment) -> OutboundReminder:
    """Resolve the address and message for one appointment."""
    return OutboundReminder(
        appointment_id=appointment.appointment_id,
        patient_name=appointment.patient_name,
        address=to_whatsapp_address(appointment.phone),
        message=build_reminder_message(appointment.patient_name, appointment.time),
    )
