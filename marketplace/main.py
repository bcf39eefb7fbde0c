import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from marketplace.core import config, errors
from marketplace.database import Database
from marketplace.routes import appointment_routes, auth_routes, availability_routes, service_routes
from marketplace.seed import seed_sample_data

logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI(title='Service Marketplace Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.state.database = Database()

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    database: Database = app.state.database
    try:
        database.initialize()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')
        return

    if config.SEED_SAMPLE_DATA:
        try:
            with database.session_scope() as db:
                seed_sample_data(db)
        except errors.SchedulingError:
            logger.exception('Loading sample data failed.')


@app.on_event('shutdown')
def dispose_database() -> None:
    app.state.database.dispose()


@app.get('/')
def root():
    return {'status': 'Marketplace Scheduling API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(service_routes.router, prefix='/services')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
