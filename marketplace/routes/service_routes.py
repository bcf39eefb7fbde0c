from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from marketplace.auth.dependencies import require_provider
from marketplace.catalog.search import (
    ServiceSearchFilters,
    create_category,
    create_service,
    get_service,
    list_categories,
    list_services_by_provider,
    search_services,
    update_service,
)
from marketplace.core import errors
from marketplace.models.user import User
from marketplace.routes.common import get_db, to_http_exception

router = APIRouter(tags=['services'])


class CategoryRequest(BaseModel):
    name: str
    description: str | None = None


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: str | None = None

    class Config:
        from_attributes = True


class CreateServiceRequest(BaseModel):
    title: str
    description: str
    price: Decimal
    price_type: str
    city: str
    duration_minutes: int | None = None
    category_id: int | None = None


class UpdateServiceRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    price: Decimal | None = None
    price_type: str | None = None
    city: str | None = None
    duration_minutes: int | None = None
    category_id: int | None = None
    is_active: bool | None = None

    def changed_fields(self) -> dict:
        # An explicit null only means something for category_id (clear it).
        return {
            name: value
            for name, value in self.model_dump(exclude_unset=True).items()
            if value is not None or name == 'category_id'
        }


class ServiceResponse(BaseModel):
    id: int
    provider_id: int
    category_id: int | None = None
    title: str
    description: str
    price: Decimal
    price_type: str
    city: str
    duration_minutes: int | None = None
    rating: float | None = None
    rating_count: int | None = None
    is_active: bool

    class Config:
        from_attributes = True


@router.get('', response_model=list[ServiceResponse])
def list_services(
    search: str | None = Query(default=None),
    category_id: int | None = Query(default=None),
    city: str | None = Query(default=None),
    min_price: Decimal | None = Query(default=None),
    max_price: Decimal | None = Query(default=None),
    price_type: str | None = Query(default=None),
    min_rating: float | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        filters = ServiceSearchFilters(
            search=search,
            category_id=category_id,
            city=city,
            min_price=min_price,
            max_price=max_price,
            price_type=price_type,
            min_rating=min_rating,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=[error['msg'] for error in exc.errors()],
        ) from exc

    try:
        return search_services(db, filters)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service_listing(
    data: CreateServiceRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider),
):
    try:
        return create_service(
            db,
            current_user.id,
            data.title,
            data.description,
            data.price,
            data.price_type,
            data.city,
            duration_minutes=data.duration_minutes,
            category_id=data.category_id,
        )
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/categories', response_model=list[CategoryResponse])
def list_service_categories(db: Session = Depends(get_db)):
    try:
        return list_categories(db)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/categories', response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_service_category(
    data: CategoryRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider),
):
    try:
        return create_category(db, data.name, data.description)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/mine', response_model=list[ServiceResponse])
def list_my_services(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider),
):
    try:
        return list_services_by_provider(db, current_user.id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/{service_id}', response_model=ServiceResponse)
def read_service(service_id: int, db: Session = Depends(get_db)):
    try:
        return get_service(db, service_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.patch('/{service_id}', response_model=ServiceResponse)
def update_service_listing(
    service_id: int,
    data: UpdateServiceRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider),
):
    try:
        service = get_service(db, service_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if service.provider_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the provider who owns this service can edit it.',
        )

    try:
        return update_service(db, service_id, **data.changed_fields())
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
