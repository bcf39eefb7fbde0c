import logging
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from threading import Lock

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.core import config, errors


logger = logging.getLogger(__name__)

Base = declarative_base()

ACTIVE_SLOT_INDEX = 'uq_appointments_active_slot'


class SlotLocks:
    """Process-wide mutexes keyed by (service, date, time).

    An entry lives only while some thread holds or waits on its key.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[Hashable, list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [Lock(), 0]
            entry[1] += 1

        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


def _is_sqlite(url: str) -> bool:
    return url.startswith('sqlite')


def _is_sqlite_memory(url: str) -> bool:
    return url in {'sqlite://', 'sqlite:///:memory:'}


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def ensure_availability_schema(engine: Engine) -> None:
    inspector = inspect(engine)

    if 'availability_windows' not in inspector.get_table_names():
        return

    existing_columns = {column['name'] for column in inspector.get_columns('availability_windows')}
    migration_steps = [
        ('is_enabled', 'ALTER TABLE availability_windows ADD COLUMN is_enabled BOOLEAN DEFAULT TRUE'),
        ('created_at', 'ALTER TABLE availability_windows ADD COLUMN created_at TIMESTAMP'),
    ]

    with engine.begin() as connection:
        for column_name, statement in migration_steps:
            if column_name not in existing_columns:
                connection.execute(text(statement))
        connection.execute(
            text(
                'CREATE INDEX IF NOT EXISTS idx_availability_service_day '
                'ON availability_windows(service_id, day_of_week)'
            )
        )


def ensure_appointment_schema(engine: Engine) -> None:
    inspector = inspect(engine)

    if 'appointments' not in inspector.get_table_names():
        return

    existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
    migration_steps = [
        ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
        ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
    ]

    with engine.begin() as connection:
        for column_name, statement in migration_steps:
            if column_name not in existing_columns:
                connection.execute(text(statement))
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_appointments_service_date ON appointments(service_id, scheduled_date)')
        )
        # Tables created before the index existed do not get it from create_all.
        connection.execute(
            text(
                f'CREATE UNIQUE INDEX IF NOT EXISTS {ACTIVE_SLOT_INDEX} '
                'ON appointments(service_id, scheduled_date, scheduled_time) '
                "WHERE status IN ('scheduled', 'confirmed')"
            )
        )


class Database:
    """Explicitly managed storage handle.

    Nothing touches the database until ``initialize()`` runs, and
    ``dispose()`` releases the connection pool. The handle also owns the
    slot locks that make booking creation atomic inside one process.
    """

    def __init__(self, url: str | None = None, echo: bool | None = None) -> None:
        self.url = url or config.DATABASE_URL
        self.echo = config.DATABASE_ECHO if echo is None else echo
        self.engine: Engine | None = None
        self.slot_locks = SlotLocks()
        self._session_factory: sessionmaker | None = None
        self._lifecycle_lock = Lock()

    @property
    def is_initialized(self) -> bool:
        return self._session_factory is not None

    def _create_engine(self) -> Engine:
        engine_options: dict = {'echo': self.echo}
        if _is_sqlite(self.url):
            engine_options['connect_args'] = {'check_same_thread': False}
            if _is_sqlite_memory(self.url):
                engine_options['poolclass'] = StaticPool

        engine = create_engine(self.url, **engine_options)
        if _is_sqlite(self.url):
            event.listen(engine, 'connect', _enable_sqlite_foreign_keys)
        return engine

    def initialize(self) -> None:
        with self._lifecycle_lock:
            if self.is_initialized:
                return

            # Model modules register their tables on Base.metadata.
            from marketplace.models import appointment, availability, service, user  # noqa: F401

            engine = self._create_engine()
            try:
                Base.metadata.create_all(bind=engine)
                ensure_availability_schema(engine)
                ensure_appointment_schema(engine)
            except SQLAlchemyError:
                engine.dispose()
                raise

            self.engine = engine
            self._session_factory = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=engine,
            )

        logger.info('Database initialized (%s)', engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        with self._lifecycle_lock:
            if self.engine is not None:
                self.engine.dispose()
            self.engine = None
            self._session_factory = None

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError('Database.initialize() must be called before opening sessions.')
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        db = self.session()
        try:
            yield db
        finally:
            db.close()


@contextmanager
def storage_operation(db: Session, operation: str, **context) -> Iterator[None]:
    """Roll back and re-raise SQLAlchemy failures as ``StorageError``."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Storage failure during %s %s', operation, context)
        raise errors.StorageError(operation, context) from exc
