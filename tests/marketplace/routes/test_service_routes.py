from decimal import Decimal

import pytest
from fastapi import HTTPException

from marketplace.core import errors
from marketplace.models.user import USER_TYPE_PROVIDER
from marketplace.routes.common import to_http_exception
from marketplace.routes.service_routes import (
    CategoryRequest,
    CreateServiceRequest,
    UpdateServiceRequest,
    create_service_category,
    create_service_listing,
    list_my_services,
    list_service_categories,
    list_services,
    read_service,
    update_service_listing,
)


def _search(db, **filters):
    params = {
        'search': None,
        'category_id': None,
        'city': None,
        'min_price': None,
        'max_price': None,
        'price_type': None,
        'min_rating': None,
    }
    params.update(filters)
    return list_services(db=db, **params)


def test_list_services_applies_filters(db, make_service) -> None:
    make_service(title='Cheap fix', price=Decimal('50.00'))
    make_service(title='Premium fix', price=Decimal('900.00'))

    assert [service.title for service in _search(db, max_price=Decimal('100'))] == ['Cheap fix']


def test_list_services_rejects_inverted_price_range(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _search(db, min_price=Decimal('100'), max_price=Decimal('10'))

    assert exception_info.value.status_code == 422


def test_read_service_returns_404_when_missing(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        read_service(service_id=12, db=db)

    assert exception_info.value.status_code == 404


def test_list_service_categories_empty(db) -> None:
    assert list_service_categories(db=db) == []


def test_create_service_listing_belongs_to_current_provider(db, make_user) -> None:
    provider = make_user(USER_TYPE_PROVIDER)

    service = create_service_listing(
        data=CreateServiceRequest(
            title='Painting',
            description='Interior painting',
            price=Decimal('250.00'),
            price_type='hourly',
            city='Santos',
            duration_minutes=90,
        ),
        db=db,
        current_user=provider,
    )

    assert service.provider_id == provider.id
    assert service.duration_minutes == 90
    assert [item.id for item in list_my_services(db=db, current_user=provider)] == [service.id]


def test_create_service_listing_rejects_invalid_price_type(db, make_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_service_listing(
            data=CreateServiceRequest(
                title='Painting',
                description='Interior painting',
                price=Decimal('250.00'),
                price_type='barter',
                city='Santos',
            ),
            db=db,
            current_user=make_user(USER_TYPE_PROVIDER),
        )

    assert exception_info.value.status_code == 400


def test_update_service_listing_deactivates_service(db, make_service, make_user) -> None:
    provider = make_user(USER_TYPE_PROVIDER)
    service = make_service(provider=provider, title='Painting')

    updated = update_service_listing(
        service_id=service.id,
        data=UpdateServiceRequest(is_active=False, city='Santos'),
        db=db,
        current_user=provider,
    )

    assert updated.is_active is False
    assert updated.city == 'Santos'
    assert _search(db) == []


def test_update_service_listing_rejects_other_provider(db, make_service, make_user) -> None:
    service = make_service()

    with pytest.raises(HTTPException) as exception_info:
        update_service_listing(
            service_id=service.id,
            data=UpdateServiceRequest(title='Hijacked'),
            db=db,
            current_user=make_user(USER_TYPE_PROVIDER),
        )

    assert exception_info.value.status_code == 403


def test_update_service_listing_requires_a_field(db, make_service, make_user) -> None:
    provider = make_user(USER_TYPE_PROVIDER)
    service = make_service(provider=provider)

    with pytest.raises(HTTPException) as exception_info:
        update_service_listing(
            service_id=service.id,
            data=UpdateServiceRequest(title=None),
            db=db,
            current_user=provider,
        )

    assert exception_info.value.status_code == 400


def test_update_service_request_keeps_explicit_category_clear() -> None:
    assert UpdateServiceRequest(category_id=None, title='Painting').changed_fields() == {
        'category_id': None,
        'title': 'Painting',
    }
    assert UpdateServiceRequest().changed_fields() == {}


def test_create_service_category_conflicts_on_duplicate_name(db, make_user) -> None:
    provider = make_user(USER_TYPE_PROVIDER)

    category = create_service_category(data=CategoryRequest(name='Gardening'), db=db, current_user=provider)

    assert [item.name for item in list_service_categories(db=db)] == ['Gardening']
    assert category.description is None
    with pytest.raises(HTTPException) as exception_info:
        create_service_category(data=CategoryRequest(name='Gardening'), db=db, current_user=provider)

    assert exception_info.value.status_code == 409


@pytest.mark.parametrize(
    ('error', 'status_code'),
    [
        (errors.ValidationError('bad'), 400),
        (errors.NotFoundError('missing'), 404),
        (errors.ConflictError('taken'), 409),
        (errors.StorageError('create_appointment', {'service_id': 1}), 503),
    ],
)
def test_to_http_exception_maps_error_types(error: errors.SchedulingError, status_code: int) -> None:
    assert to_http_exception(error).status_code == status_code
