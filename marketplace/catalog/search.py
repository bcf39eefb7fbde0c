"""Service catalog: explicit search filters, service and category upkeep, cascade delete."""

import logging
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.core import errors
from marketplace.database import storage_operation
from marketplace.models.service import PRICE_TYPES, Service, ServiceCategory
from marketplace.models.user import USER_TYPE_PROVIDER, User

logger = logging.getLogger(__name__)

MAX_PRICE = Decimal('999999.99')


class ServiceSearchFilters(BaseModel):
    """Optional catalog filters; every field left as None is ignored.

    search: substring of title or description
    category_id: exact category
    city: substring of city
    min_price / max_price: inclusive price range
    price_type: exact price type
    min_rating: inclusive lower bound on rating
    """
    search: str | None = None
    category_id: int | None = None
    city: str | None = None
    min_price: Decimal | None = Field(default=None, ge=0)
    max_price: Decimal | None = Field(default=None, ge=0)
    price_type: str | None = None
    min_rating: float | None = Field(default=None, ge=0, le=5)

    @field_validator('search', 'city')
    @classmethod
    def strip_blank_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    @field_validator('price_type')
    @classmethod
    def validate_price_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in PRICE_TYPES:
            raise ValueError('Invalid price type.')
        return normalized

    @model_validator(mode='after')
    def validate_price_range(self) -> 'ServiceSearchFilters':
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError('min_price cannot be greater than max_price.')
        return self


def search_services(db: Session, filters: ServiceSearchFilters | None = None) -> list[Service]:
    filters = filters or ServiceSearchFilters()

    with storage_operation(db, 'search_services', **filters.model_dump(exclude_none=True)):
        query = db.query(Service).filter(Service.is_active.is_(True))

        if filters.search is not None:
            pattern = f'%{filters.search}%'
            query = query.filter(or_(Service.title.ilike(pattern), Service.description.ilike(pattern)))
        if filters.category_id is not None:
            query = query.filter(Service.category_id == filters.category_id)
        if filters.city is not None:
            query = query.filter(Service.city.ilike(f'%{filters.city}%'))
        if filters.min_price is not None:
            query = query.filter(Service.price >= filters.min_price)
        if filters.max_price is not None:
            query = query.filter(Service.price <= filters.max_price)
        if filters.price_type is not None:
            query = query.filter(Service.price_type == filters.price_type)
        if filters.min_rating is not None:
            query = query.filter(Service.rating >= filters.min_rating)

        return query.order_by(Service.rating.desc(), Service.created_at.desc(), Service.id.desc()).all()


def _validate_price(price) -> Decimal:
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError) as exc:
        raise errors.ValidationError('Price must be a number.') from exc
    if not Decimal('0') < value <= MAX_PRICE:
        raise errors.ValidationError(f'Price must be greater than 0 and at most {MAX_PRICE}.')
    return value


def _require_text(value: str | None, field_name: str) -> str:
    normalized = (value or '').strip()
    if not normalized:
        raise errors.ValidationError(f'{field_name} is required.')
    return normalized


def create_service(
    db: Session,
    provider_id: int,
    title: str,
    description: str,
    price,
    price_type: str,
    city: str,
    duration_minutes: int | None = None,
    category_id: int | None = None,
) -> Service:
    title = _require_text(title, 'Title')
    description = _require_text(description, 'Description')
    city = _require_text(city, 'City')
    price_value = _validate_price(price)
    normalized_price_type = _validate_price_type(price_type)
    _validate_duration(duration_minutes)

    with storage_operation(db, 'create_service', provider_id=provider_id):
        provider = db.get(User, provider_id)
        if provider is None or provider.user_type != USER_TYPE_PROVIDER:
            raise errors.NotFoundError('Provider not found.')
        _ensure_category(db, category_id)

        service = Service(
            provider_id=provider_id,
            category_id=category_id,
            title=title,
            description=description,
            price=price_value,
            price_type=normalized_price_type,
            city=city,
            duration_minutes=duration_minutes,
            rating=0.0,
            rating_count=0,
            is_active=True,
        )
        db.add(service)
        db.commit()
        db.refresh(service)

    logger.info('Created service %s for provider %s', service.id, provider_id)
    return service


def _validate_price_type(price_type: str | None) -> str:
    normalized = (price_type or '').strip().lower()
    if normalized not in PRICE_TYPES:
        raise errors.ValidationError(f'Price type must be one of: {", ".join(PRICE_TYPES)}.')
    return normalized


def _validate_duration(duration_minutes: int | None) -> int | None:
    if duration_minutes is not None and duration_minutes < 0:
        raise errors.ValidationError('Duration cannot be negative.')
    return duration_minutes


def _ensure_category(db: Session, category_id: int | None) -> None:
    if category_id is not None and db.get(ServiceCategory, category_id) is None:
        raise errors.NotFoundError('Category not found.')


UPDATABLE_FIELDS = {
    'title': lambda value: _require_text(value, 'Title'),
    'description': lambda value: _require_text(value, 'Description'),
    'price': _validate_price,
    'price_type': _validate_price_type,
    'city': lambda value: _require_text(value, 'City'),
    'duration_minutes': _validate_duration,
    'category_id': lambda value: value or None,
    'is_active': bool,
}


def update_service(db: Session, service_id: int, **fields) -> Service:
    """Apply a partial update; ``category_id=None`` clears the category.

    Deactivated services stay bookable by id but no longer show up in search.
    """
    if not fields:
        raise errors.ValidationError('No fields to update.')

    unknown = sorted(set(fields) - set(UPDATABLE_FIELDS))
    if unknown:
        raise errors.ValidationError(f'Fields cannot be updated: {", ".join(unknown)}.')

    changes = {name: UPDATABLE_FIELDS[name](value) for name, value in fields.items()}

    with storage_operation(db, 'update_service', service_id=service_id, fields=','.join(sorted(changes))):
        service = db.get(Service, service_id)
        if service is None:
            raise errors.NotFoundError('Service not found.')
        if 'category_id' in changes:
            _ensure_category(db, changes['category_id'])

        for name, value in changes.items():
            setattr(service, name, value)
        db.commit()
        db.refresh(service)

    logger.info('Updated service %s: %s', service_id, ', '.join(sorted(changes)))
    return service


def get_service(db: Session, service_id: int) -> Service:
    with storage_operation(db, 'get_service', service_id=service_id):
        service = db.get(Service, service_id)
    if service is None:
        raise errors.NotFoundError('Service not found.')
    return service


def list_services_by_provider(db: Session, provider_id: int) -> list[Service]:
    with storage_operation(db, 'list_services_by_provider', provider_id=provider_id):
        return db.query(Service).filter(
            Service.provider_id == provider_id,
        ).order_by(Service.created_at.desc(), Service.id.desc()).all()


def list_categories(db: Session) -> list[ServiceCategory]:
    with storage_operation(db, 'list_categories'):
        return db.query(ServiceCategory).order_by(ServiceCategory.name.asc()).all()


def create_category(db: Session, name: str, description: str | None = None) -> ServiceCategory:
    name = _require_text(name, 'Category name')
    description = (description or '').strip() or None

    with storage_operation(db, 'create_category', name=name):
        category = ServiceCategory(name=name, description=description)
        db.add(category)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise errors.ConflictError('Category already exists.') from exc
        db.refresh(category)

    logger.info('Created category %s (%s)', category.id, name)
    return category


def delete_service(db: Session, service_id: int) -> None:
    """Delete a service together with its windows and appointments."""
    with storage_operation(db, 'delete_service', service_id=service_id):
        service = db.get(Service, service_id)
        if service is None:
            raise errors.NotFoundError('Service not found.')
        db.delete(service)
        db.commit()

    logger.info('Deleted service %s', service_id)
