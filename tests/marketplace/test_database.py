import threading

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError

from marketplace.core import errors
from marketplace.database import ACTIVE_SLOT_INDEX, Database, SlotLocks, storage_operation


def test_session_requires_initialize() -> None:
    database = Database('sqlite://')

    with pytest.raises(RuntimeError):
        database.session()


def test_initialize_creates_tables_and_is_idempotent() -> None:
    database = Database('sqlite://')
    database.initialize()
    engine = database.engine
    database.initialize()
    try:
        assert database.engine is engine
        inspector = inspect(engine)
        assert {'users', 'services', 'service_categories', 'availability_windows', 'appointments'} <= set(
            inspector.get_table_names()
        )
        assert ACTIVE_SLOT_INDEX in {index['name'] for index in inspector.get_indexes('appointments')}
    finally:
        database.dispose()

    assert database.is_initialized is False
    assert database.engine is None


def test_initialize_upgrades_legacy_appointments_table(tmp_path) -> None:
    database = Database(f'sqlite:///{tmp_path / "legacy.db"}')
    legacy_engine = database._create_engine()
    with legacy_engine.begin() as connection:
        connection.execute(
            text(
                'CREATE TABLE appointments ('
                'id INTEGER PRIMARY KEY, client_id INTEGER NOT NULL, service_id INTEGER NOT NULL, '
                'scheduled_date DATE NOT NULL, scheduled_time VARCHAR(5) NOT NULL, status VARCHAR NOT NULL)'
            )
        )
    legacy_engine.dispose()

    database.initialize()
    try:
        inspector = inspect(database.engine)
        assert {'notes', 'updated_at'} <= {column['name'] for column in inspector.get_columns('appointments')}
        assert ACTIVE_SLOT_INDEX in {index['name'] for index in inspector.get_indexes('appointments')}
    finally:
        database.dispose()


def test_slot_locks_track_only_held_keys() -> None:
    locks = SlotLocks()

    with locks.hold((1, '2026-01-05', '09:00')):
        with locks.hold((1, '2026-01-05', '10:00')):
            assert len(locks) == 2
        assert len(locks) == 1

    assert len(locks) == 0


def test_slot_locks_release_entry_when_holder_raises() -> None:
    locks = SlotLocks()

    with pytest.raises(RuntimeError):
        with locks.hold((1, '2026-01-05', '09:00')):
            raise RuntimeError('boom')

    assert len(locks) == 0


def test_slot_locks_serialize_holders_of_same_key() -> None:
    locks = SlotLocks()
    key = (1, '2026-01-05', '09:00')
    entered = threading.Event()
    release = threading.Event()
    order = []

    def first() -> None:
        with locks.hold(key):
            entered.set()
            release.wait(timeout=5)
            order.append('first')

    def second() -> None:
        entered.wait(timeout=5)
        with locks.hold(key):
            order.append('second')

    threads = [threading.Thread(target=first), threading.Thread(target=second)]
    for thread in threads:
        thread.start()
    entered.wait(timeout=5)
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert order == ['first', 'second']
    assert len(locks) == 0


def test_storage_operation_rolls_back_and_wraps(database) -> None:
    with database.session_scope() as db:
        with pytest.raises(errors.StorageError) as exception_info:
            with storage_operation(db, 'lookup', service_id=7):
                db.execute(text('SELECT * FROM missing_table'))

    assert exception_info.value.operation == 'lookup'
    assert exception_info.value.context == {'service_id': 7}
    assert isinstance(exception_info.value.__cause__, OperationalError)
    assert 'service_id=7' in exception_info.value.message


def test_storage_operation_lets_scheduling_errors_through(database) -> None:
    with database.session_scope() as db:
        with pytest.raises(errors.NotFoundError):
            with storage_operation(db, 'lookup'):
                raise errors.NotFoundError('Service not found.')
