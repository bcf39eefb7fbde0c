"""Load sample categories, users, services and weekly windows.

Usage:
    python -m marketplace.seed
"""
import logging
import sys

from sqlalchemy.orm import Session

from marketplace.catalog.search import create_service
from marketplace.core import errors
from marketplace.database import Database, storage_operation
from marketplace.models.service import Service, ServiceCategory
from marketplace.models.user import USER_TYPE_CLIENT, USER_TYPE_PROVIDER, User
from marketplace.scheduling.rules import AvailabilityRuleStore, WindowSpec

logger = logging.getLogger(__name__)

SAMPLE_CATEGORIES = [
    ('Cleaning', 'Residential and commercial cleaning'),
    ('Repairs', 'General repairs and maintenance'),
    ('Installation', 'Equipment and systems installation'),
    ('Consulting', 'Technical consulting'),
    ('Other', 'Other services'),
]

SAMPLE_USERS = [
    ('Joao Silva', 'joao@example.com', '(11) 99999-9999', 'Sao Paulo', USER_TYPE_PROVIDER),
    ('Maria Santos', 'maria@example.com', '(11) 88888-8888', 'Sao Paulo', USER_TYPE_CLIENT),
]

WEEKDAYS = (1, 2, 3, 4, 5)

# (category, title, description, price, price_type, duration, windows)
SAMPLE_SERVICES = [
    (
        'Installation',
        'Air conditioner installation',
        'Professional air conditioner installation with warranty',
        '500.00',
        'fixed',
        120,
        [WindowSpec(day, '08:00', '18:00') for day in WEEKDAYS] + [WindowSpec(6, '08:00', '14:00')],
    ),
    (
        'Repairs',
        'Appliance repair',
        'Repair of refrigerators, washing machines and other appliances',
        '150.00',
        'hourly',
        60,
        [WindowSpec(day, '09:00', '17:00') for day in WEEKDAYS],
    ),
    (
        'Cleaning',
        'Home cleaning',
        'Complete home cleaning',
        '80.00',
        'hourly',
        None,
        [WindowSpec(day, '07:00', '19:00') for day in WEEKDAYS]
        + [WindowSpec(6, '07:00', '15:00'), WindowSpec(0, '08:00', '12:00')],
    ),
]


def seed_sample_data(db: Session) -> bool:
    """Insert sample rows unless the database already has services."""
    with storage_operation(db, 'seed_sample_data'):
        if db.query(Service.id).first() is not None:
            return False

        categories = {}
        for name, description in SAMPLE_CATEGORIES:
            category = db.query(ServiceCategory).filter(ServiceCategory.name == name).first()
            if category is None:
                category = ServiceCategory(name=name, description=description)
                db.add(category)
            categories[name] = category

        users = {}
        for name, email, phone, city, user_type in SAMPLE_USERS:
            user = db.query(User).filter(User.email == email).first()
            if user is None:
                user = User(name=name, email=email, phone=phone, city=city, user_type=user_type)
                db.add(user)
            users[user_type] = user
        db.commit()

    provider = users[USER_TYPE_PROVIDER]
    rules = AvailabilityRuleStore(db)
    for category_name, title, description, price, price_type, duration, windows in SAMPLE_SERVICES:
        service = create_service(
            db,
            provider.id,
            title,
            description,
            price,
            price_type,
            provider.city,
            duration_minutes=duration,
            category_id=categories[category_name].id,
        )
        rules.replace_windows(service.id, windows)

    logger.info('Seeded %s sample services', len(SAMPLE_SERVICES))
    return True


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    database = Database()
    try:
        database.initialize()
        with database.session_scope() as db:
            seeded = seed_sample_data(db)
    except errors.SchedulingError as exc:
        print(f"Seeding failed: {exc.message}", file=sys.stderr)
        sys.exit(1)
    finally:
        database.dispose()

    print("Sample data loaded." if seeded else "Database already has services; nothing to do.")


if __name__ == "__main__":
    main()
