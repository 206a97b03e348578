"""Appointment management for staff: listing, manual booking and status
changes.  Bookings made in chat arrive through the conversation state
machine; this service never touches dialogue state."""

from __future__ import annotations

import logging
import time

from docdesk.dialogue.dateparse import parse_date, parse_time
from docdesk.dialogue.validators import clean_email, clean_name, clean_phone
from docdesk.exceptions import AppointmentNotFoundError, DocDeskError
from docdesk.models import DEFAULT_PURPOSE, Appointment, AppointmentStatus
from docdesk.services.repository import Repository

logger = logging.getLogger(__name__)


class AppointmentValidationError(DocDeskError):
    """Raised when a manual booking has an invalid field."""


class AppointmentService:
    def __init__(self, repository: Repository) -> None:
        self._repository = repository

    def list_appointments(
        self, status: AppointmentStatus | None = None, on_date: str | None = None,
    ) -> list[Appointment]:
        return self._repository.list_appointments(status=status, on_date=on_date)

    def get(self, appointment_id: str) -> Appointment:
        appointment = self._repository.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    def create(
        self,
        *,
        name: str,
        email: str,
        phone: str,
        date: str,
        time_of_day: str,
        purpose: str | None = None,
    ) -> Appointment:
        fields = {
            "name": clean_name(name),
            "email": clean_email(email),
            "phone": clean_phone(phone),
            "date": parse_date(date),
            "time": parse_time(time_of_day),
        }
        invalid = sorted(k for k, v in fields.items() if v is None)
        if invalid:
            raise AppointmentValidationError(
                f"Invalid appointment fields: {', '.join(invalid)}",
                details={"fields": invalid},
            )

        appointment = Appointment(
            **fields,
            purpose=(purpose or "").strip() or DEFAULT_PURPOSE,
            session_id=f"manual_{int(time.time() * 1000)}",
        )
        self._repository.save_appointment(appointment)
        logger.info("Manual appointment %s created", appointment.id)
        return appointment

    def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        appointment = self._repository.update_appointment_status(appointment_id, status)
        logger.info("Appointment %s is now %s", appointment_id, status)
        return appointment

    def delete(self, appointment_id: str) -> None:
        self._repository.delete_appointment(appointment_id)
        logger.info("Appointment %s deleted", appointment_id)
