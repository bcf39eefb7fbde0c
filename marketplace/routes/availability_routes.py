from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.orm import Session

from marketplace.auth.dependencies import require_provider
from marketplace.catalog.search import get_service
from marketplace.core import errors
from marketplace.database import Database
from marketplace.models.user import User
from marketplace.routes.common import get_database, get_db, to_http_exception
from marketplace.scheduling.rules import AvailabilityRuleStore, WindowSpec
from marketplace.scheduling.slots import SlotGenerator
from marketplace.scheduling.times import normalize_time, parse_time, validate_day_of_week

router = APIRouter(tags=['availability'])


class WindowRequest(BaseModel):
    day_of_week: int
    start_time: str
    end_time: str
    enabled: bool = True

    @field_validator('day_of_week')
    @classmethod
    def validate_day(cls, value: int) -> int:
        try:
            return validate_day_of_week(value)
        except errors.ValidationError as exc:
            raise ValueError(exc.message) from exc

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        try:
            return normalize_time(value)
        except errors.ValidationError as exc:
            raise ValueError(exc.message) from exc

    @model_validator(mode='after')
    def validate_range(self) -> 'WindowRequest':
        if parse_time(self.start_time) >= parse_time(self.end_time):
            raise ValueError('Start time must be before end time.')
        return self


class ReplaceWindowsRequest(BaseModel):
    windows: list[WindowRequest]


class UpdateWindowRequest(BaseModel):
    enabled: bool


class WindowResponse(BaseModel):
    id: int
    service_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_enabled: bool

    class Config:
        from_attributes = True


def ensure_service_owner(db: Session, service_id: int, provider: User) -> None:
    try:
        service = get_service(db, service_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if service.provider_id != provider.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the provider who owns this service can edit its availability.',
        )


@router.get('/services/{service_id}/windows', response_model=list[WindowResponse])
def list_windows(service_id: int, db: Session = Depends(get_db)):
    try:
        return AvailabilityRuleStore(db).list_windows(service_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/services/{service_id}/windows', response_model=WindowResponse, status_code=status.HTTP_201_CREATED)
def create_window(
    service_id: int,
    data: WindowRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider),
):
    ensure_service_owner(db, service_id, current_user)

    try:
        return AvailabilityRuleStore(db).add_window(
            service_id,
            data.day_of_week,
            data.start_time,
            data.end_time,
            enabled=data.enabled,
        )
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.put('/services/{service_id}/windows', response_model=list[WindowResponse])
def replace_windows(
    service_id: int,
    data: ReplaceWindowsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider),
):
    ensure_service_owner(db, service_id, current_user)

    try:
        return AvailabilityRuleStore(db).replace_windows(
            service_id,
            [
                WindowSpec(window.day_of_week, window.start_time, window.end_time, window.enabled)
                for window in data.windows
            ],
        )
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.patch('/windows/{window_id}', response_model=WindowResponse)
def update_window(
    window_id: int,
    data: UpdateWindowRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider),
):
    rules = AvailabilityRuleStore(db)
    try:
        window = rules.get_window(window_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc

    ensure_service_owner(db, window.service_id, current_user)

    try:
        return rules.set_window_enabled(window_id, data.enabled)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.delete('/windows/{window_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_window(
    window_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider),
):
    rules = AvailabilityRuleStore(db)
    try:
        window = rules.get_window(window_id)
    except errors.NotFoundError:
        return None
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc

    ensure_service_owner(db, window.service_id, current_user)

    try:
        rules.remove_window(window_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    return None


@router.get('/services/{service_id}/slots', response_model=list[str])
def list_available_slots(
    service_id: int,
    slot_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
    database: Database = Depends(get_database),
):
    try:
        return SlotGenerator(db, slot_locks=database.slot_locks).compute_available_slots(service_id, slot_date)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
