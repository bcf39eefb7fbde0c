from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from marketplace.auth.dependencies import get_current_user, require_client, require_provider
from marketplace.core import errors
from marketplace.database import Database
from marketplace.models.appointment import STATUS_CANCELLED, Appointment
from marketplace.models.user import User
from marketplace.routes.common import get_database, get_db, to_http_exception
from marketplace.scheduling.ledger import BookingLedger, normalize_notes, validate_status
from marketplace.scheduling.times import normalize_time

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(BaseModel):
    service_id: int
    date: date
    time: str
    notes: str | None = None

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        try:
            return normalize_time(value)
        except errors.ValidationError as exc:
            raise ValueError(exc.message) from exc

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        try:
            return normalize_notes(value)
        except errors.ValidationError as exc:
            raise ValueError(exc.message) from exc


class UpdateStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status_value(cls, value: str) -> str:
        try:
            return validate_status(value)
        except errors.ValidationError as exc:
            raise ValueError(exc.message) from exc


class AppointmentResponse(BaseModel):
    id: int
    client_id: int
    service_id: int
    scheduled_date: date
    scheduled_time: str
    status: str
    notes: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class AppointmentDetailResponse(AppointmentResponse):
    service_title: str
    provider_name: str | None = None
    client_name: str | None = None


def _load_appointment(ledger: BookingLedger, appointment_id: int) -> Appointment:
    try:
        return ledger.get_appointment(appointment_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


def _is_service_provider(appointment: Appointment, user: User) -> bool:
    return appointment.service is not None and appointment.service.provider_id == user.id


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    database: Database = Depends(get_database),
    current_user: User = Depends(require_client),
):
    try:
        return BookingLedger(db, database.slot_locks).create_appointment(
            current_user.id,
            data.service_id,
            data.date,
            data.time,
            notes=data.notes,
        )
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/mine', response_model=list[AppointmentDetailResponse])
def list_my_appointments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return BookingLedger(db).list_by_client(current_user.id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/provider', response_model=list[AppointmentDetailResponse])
def list_provider_appointments(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider),
):
    try:
        return BookingLedger(db).list_by_provider(current_user.id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ledger = BookingLedger(db)
    appointment = _load_appointment(ledger, appointment_id)

    is_client = appointment.client_id == current_user.id
    if not is_client and not _is_service_provider(appointment, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the client or the service provider can change this appointment.',
        )
    if is_client and not _is_service_provider(appointment, current_user) and data.status != STATUS_CANCELLED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Clients can only cancel their appointments.',
        )

    try:
        return ledger.update_status(appointment_id, data.status)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider),
):
    ledger = BookingLedger(db)
    appointment = _load_appointment(ledger, appointment_id)

    if not _is_service_provider(appointment, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the service provider can delete this appointment.',
        )

    try:
        ledger.delete_appointment(appointment_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    return None
