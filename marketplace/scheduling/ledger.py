"""Booking Ledger: appointment records and the one-active-booking-per-slot rule."""

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from marketplace.core import config, errors
from marketplace.database import SlotLocks, storage_operation
from marketplace.models.appointment import (
    ACTIVE_STATUSES,
    APPOINTMENT_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_SCHEDULED,
    Appointment,
)
from marketplace.models.service import Service
from marketplace.models.user import User
from marketplace.scheduling.times import normalize_time, parse_date, parse_time

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS = {
    STATUS_SCHEDULED: {STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_COMPLETED},
    STATUS_CONFIRMED: {STATUS_CANCELLED, STATUS_COMPLETED},
    STATUS_CANCELLED: set(),
    STATUS_COMPLETED: set(),
}


@dataclass
class AppointmentDetail:
    id: int
    client_id: int
    service_id: int
    scheduled_date: date
    scheduled_time: str
    status: str
    notes: str | None
    created_at: datetime | None
    service_title: str
    provider_name: str | None = None
    client_name: str | None = None


def normalize_notes(notes: str | None) -> str | None:
    if notes is None:
        return None

    normalized = notes.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise errors.ValidationError(
            f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.'
        )
    return normalized


def validate_status(status: str) -> str:
    normalized = (status or '').strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise errors.ValidationError(
            f'Invalid status. Expected one of: {", ".join(APPOINTMENT_STATUSES)}.'
        )
    return normalized


class BookingLedger:
    """Creates and queries appointments.

    Pass the ``SlotLocks`` owned by the shared ``Database`` handle so that
    concurrent requests in this process serialize on the same slot.
    """

    def __init__(self, db: Session, slot_locks: SlotLocks | None = None) -> None:
        self.db = db
        self.slot_locks = slot_locks if slot_locks is not None else SlotLocks()

    def _find_active_at_slot(self, service_id: int, scheduled_date: date, scheduled_time: str) -> Appointment | None:
        return self.db.query(Appointment).filter(
            Appointment.service_id == service_id,
            Appointment.scheduled_date == scheduled_date,
            Appointment.scheduled_time == scheduled_time,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).first()

    def create_appointment(
        self,
        client_id: int,
        service_id: int,
        scheduled_date: str | date,
        scheduled_time: str,
        notes: str | None = None,
    ) -> Appointment:
        booking_date = parse_date(scheduled_date)
        booking_time = normalize_time(scheduled_time)
        booking_notes = normalize_notes(notes)
        context = {'client_id': client_id, 'service_id': service_id, 'date': str(booking_date), 'time': booking_time}

        with self.slot_locks.hold((service_id, booking_date, booking_time)):
            with storage_operation(self.db, 'create_appointment', **context):
                if self.db.get(User, client_id) is None:
                    raise errors.NotFoundError('Client not found.')
                if self.db.get(Service, service_id) is None:
                    raise errors.NotFoundError('Service not found.')

                if self._find_active_at_slot(service_id, booking_date, booking_time) is not None:
                    logger.warning('Slot already booked: %s', context)
                    raise errors.ConflictError('This time is already booked.')

                appointment = Appointment(
                    client_id=client_id,
                    service_id=service_id,
                    scheduled_date=booking_date,
                    scheduled_time=booking_time,
                    status=STATUS_SCHEDULED,
                    notes=booking_notes,
                )
                self.db.add(appointment)
                try:
                    self.db.commit()
                except IntegrityError as exc:
                    # Another process won the race on the unique index.
                    self.db.rollback()
                    logger.warning('Slot already booked (unique index): %s', context)
                    raise errors.ConflictError('This time is already booked.') from exc
                self.db.refresh(appointment)

        logger.info('Created appointment %s: %s', appointment.id, context)
        return appointment

    def get_appointment(self, appointment_id: int) -> Appointment:
        with storage_operation(self.db, 'get_appointment', appointment_id=appointment_id):
            appointment = self.db.get(Appointment, appointment_id)
        if appointment is None:
            raise errors.NotFoundError('Appointment not found.')
        return appointment

    def active_appointments(self, service_id: int, scheduled_date: str | date) -> list[Appointment]:
        booking_date = parse_date(scheduled_date)

        with storage_operation(self.db, 'active_appointments', service_id=service_id, date=str(booking_date)):
            return self.db.query(Appointment).filter(
                Appointment.service_id == service_id,
                Appointment.scheduled_date == booking_date,
                Appointment.status.in_(ACTIVE_STATUSES),
            ).order_by(Appointment.scheduled_time.asc()).all()

    def booked_minutes(self, service_id: int, scheduled_date: str | date) -> list[int]:
        return [
            parse_time(appointment.scheduled_time)
            for appointment in self.active_appointments(service_id, scheduled_date)
        ]

    def list_by_client(self, client_id: int) -> list[AppointmentDetail]:
        provider = aliased(User)

        with storage_operation(self.db, 'list_by_client', client_id=client_id):
            rows = self.db.query(Appointment, Service.title, provider.name).join(
                Service, Service.id == Appointment.service_id,
            ).join(
                provider, provider.id == Service.provider_id,
            ).filter(
                Appointment.client_id == client_id,
            ).order_by(
                Appointment.scheduled_date.desc(),
                Appointment.scheduled_time.desc(),
                Appointment.id.desc(),
            ).all()

        return [
            _to_detail(appointment, service_title, provider_name=provider_name)
            for appointment, service_title, provider_name in rows
        ]

    def list_by_provider(self, provider_id: int) -> list[AppointmentDetail]:
        client = aliased(User)

        with storage_operation(self.db, 'list_by_provider', provider_id=provider_id):
            rows = self.db.query(Appointment, Service.title, client.name).join(
                Service, Service.id == Appointment.service_id,
            ).join(
                client, client.id == Appointment.client_id,
            ).filter(
                Service.provider_id == provider_id,
            ).order_by(
                Appointment.scheduled_date.desc(),
                Appointment.scheduled_time.desc(),
                Appointment.id.desc(),
            ).all()

        return [
            _to_detail(appointment, service_title, client_name=client_name)
            for appointment, service_title, client_name in rows
        ]

    def update_status(self, appointment_id: int, status: str) -> Appointment:
        target_status = validate_status(status)

        with storage_operation(self.db, 'update_status', appointment_id=appointment_id, status=target_status):
            appointment = self.db.get(Appointment, appointment_id)
            if appointment is None:
                raise errors.NotFoundError('Appointment not found.')

            current_status = appointment.status
            if current_status == target_status:
                return appointment

            if target_status not in STATUS_TRANSITIONS.get(current_status, set()):
                raise errors.ConflictError(
                    f'Cannot change an appointment from {current_status} to {target_status}.'
                )

            appointment.status = target_status
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                raise errors.ConflictError('This time is already booked.') from exc
            self.db.refresh(appointment)

        logger.info('Appointment %s: %s -> %s', appointment_id, current_status, target_status)
        return appointment

    def cancel_appointment(self, appointment_id: int) -> Appointment:
        return self.update_status(appointment_id, STATUS_CANCELLED)

    def delete_appointment(self, appointment_id: int) -> None:
        with storage_operation(self.db, 'delete_appointment', appointment_id=appointment_id):
            appointment = self.db.get(Appointment, appointment_id)
            if appointment is None:
                raise errors.NotFoundError('Appointment not found.')

            self.db.delete(appointment)
            self.db.commit()

        logger.info('Deleted appointment %s', appointment_id)


def _to_detail(
    appointment: Appointment,
    service_title: str,
    provider_name: str | None = None,
    client_name: str | None = None,
) -> AppointmentDetail:
    return AppointmentDetail(
        id=appointment.id,
        client_id=appointment.client_id,
        service_id=appointment.service_id,
        scheduled_date=appointment.scheduled_date,
        scheduled_time=appointment.scheduled_time,
        status=appointment.status,
        notes=appointment.notes,
        created_at=appointment.created_at,
        service_title=service_title,
        provider_name=provider_name,
        client_name=client_name,
    )
