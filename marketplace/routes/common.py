from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError

from marketplace.core import errors
from marketplace.database import Database

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

_STATUS_BY_ERROR = (
    (errors.ValidationError, status.HTTP_400_BAD_REQUEST),
    (errors.NotFoundError, status.HTTP_404_NOT_FOUND),
    (errors.ConflictError, status.HTTP_409_CONFLICT),
)


def get_database(request: Request) -> Database:
    return request.app.state.database


def ensure_database_ready(database: Database) -> None:
    try:
        database.initialize()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_db(database: Database = Depends(get_database)):
    ensure_database_ready(database)
    db = database.session()
    try:
        yield db
    finally:
        db.close()


def to_http_exception(exc: errors.SchedulingError) -> HTTPException:
    if isinstance(exc, errors.StorageError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        )

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.message)

    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
