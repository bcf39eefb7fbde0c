import itertools
from datetime import date
from decimal import Decimal

import pytest

from marketplace.database import Database
from marketplace.models.appointment import Appointment
from marketplace.models.service import Service
from marketplace.models.user import USER_TYPE_CLIENT, USER_TYPE_PROVIDER, User

MONDAY = date(2026, 1, 5)


@pytest.fixture
def database():
    database = Database('sqlite://')
    database.initialize()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture
def db(database):
    with database.session_scope() as session:
        yield session


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make_user(user_type: str = USER_TYPE_CLIENT, name: str | None = None) -> User:
        number = next(counter)
        user = User(
            name=name or f'{user_type.title()} {number}',
            email=f'{user_type}{number}@example.com',
            city='Sao Paulo',
            user_type=user_type,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_service(db, make_user):
    def _make_service(provider: User | None = None, duration_minutes: int | None = 60, **overrides) -> Service:
        provider = provider or make_user(USER_TYPE_PROVIDER)
        fields = {
            'provider_id': provider.id,
            'title': 'Appliance repair',
            'description': 'Refrigerators and washing machines',
            'price': Decimal('150.00'),
            'price_type': 'hourly',
            'city': 'Sao Paulo',
            'duration_minutes': duration_minutes,
            'rating': 0.0,
            'rating_count': 0,
            'is_active': True,
        }
        fields.update(overrides)
        service = Service(**fields)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    return _make_service


@pytest.fixture
def add_appointment(db):
    def _add_appointment(client: User, service: Service, scheduled_time: str, status: str = 'scheduled',
                         scheduled_date: date = MONDAY) -> Appointment:
        appointment = Appointment(
            client_id=client.id,
            service_id=service.id,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            status=status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _add_appointment
