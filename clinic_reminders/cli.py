"""Operator command line interface for the clinic reminder service."""

from __future__ import annotations

import argparse
import json
from datetime import date as Date
from typing import Sequence

from clinic_reminders.adapters.messaging import AuthenticationError
from clinic_reminders.config import resolve_config
from clinic_reminders.domain.models import AppointmentValidationError
from clinic_reminders.jobs.scheduler import build_runtime, run_once, serve
from clinic_reminders.storage.appointments import AppointmentStore, AppointmentStoreError
from clinic_reminders.utils.logging import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clinic-reminders", description="Clinic reminder operations CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Connect WhatsApp and run the daily reminder scheduler")
    serve_parser.set_defaults(handler=_handle_serve)

    send_parser = subparsers.add_parser("send-now", help="Connect WhatsApp and send one reminder batch")
    send_parser.add_argument(
        "--date",
        type=Date.fromisoformat,
        help="Appointment date in YYYY-MM-DD format (default: tomorrow in the clinic timezone)",
    )
    send_parser.set_defaults(handler=_handle_send_now)

    appt_parser = subparsers.add_parser("appointments", help="Manage stored appointments")
    appt_subparsers = appt_parser.add_subparsers(dest="appointments_command", required=True)

    add_parser = appt_subparsers.add_parser("add", help="Create an appointment")
    add_parser.add_argument("--user", required=True, help="Owning user")
    add_parser.add_argument("--date", required=True, help="Appointment date (YYYY-MM-DD)")
    add_parser.add_argument("--time", required=True, help="Appointment time (HH:MM)")
    add_parser.add_argument("--patient", required=True, help="Patient name")
    add_parser.add_argument("--phone", required=True, help="Patient phone")
    add_parser.set_defaults(handler=_handle_add)

    list_parser = appt_subparsers.add_parser("list", help="List a user's appointments")
    list_parser.add_argument("--user", required=True, help="Owning user")
    list_parser.set_defaults(handler=_handle_list)

    delete_parser = appt_subparsers.add_parser("delete", help="Delete an appointment")
    delete_parser.add_argument("--user", required=True, help="Owning user")
    delete_parser.add_argument("appointment_id", help="Appointment identifier")
    delete_parser.set_defaults(handler=_handle_delete)

    return parser


def _store() -> AppointmentStore:
    config = resolve_config()
    return AppointmentStore(config.store_path, tz=config.timezone)


def _handle_serve(_args: argparse.Namespace) -> int:
    runtime = build_runtime(resolve_config())
    try:
        serve(runtime)
    except AuthenticationError:
        return 1
    except KeyboardInterrupt:
        pass
    return 0


def _handle_send_now(args: argparse.Namespace) -> int:
    runtime = build_runtime(resolve_config())
    try:
        result = run_once(runtime, target_date=args.date)
    except AuthenticationError:
        return 1
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0 if result["status"] == "completed" else 1


def _handle_add(args: argparse.Namespace) -> int:
    try:
        appointment = _store().create(
            args.user,
            date=args.date,
            time=args.time,
            patient_name=args.patient,
            phone=args.phone,
        )
    except (AppointmentValidationError, AppointmentStoreError) as exc:
        raise SystemExit(str(exc)) from exc
    print(json.dumps(appointment.to_record(), indent=2, ensure_ascii=False))
    return 0


def _handle_list(args: argparse.Namespace) -> int:
    try:
        appointments = _store().find_by_user(args.user)
    except AppointmentStoreError as exc:
        raise SystemExit(str(exc)) from exc
    events = [item.calendar_event() for item in appointments]
    print(json.dumps(events, indent=2, ensure_ascii=False))
    return 0


def _handle_delete(args: argparse.Namespace) -> int:
    try:
        _store().delete(args.appointment_id, args.user)
    except AppointmentStoreError as exc:
        raise SystemExit(str(exc)) from exc
    print(f"Deleted appointment {args.appointment_id}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging()
    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
