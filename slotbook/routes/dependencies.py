from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from slotbook.core.errors import SchedulingError
from slotbook.core.time_range import Clock, utc_now
from slotbook.database import SessionLocal, ensure_slot_schema


def ensure_database_ready() -> None:
    try:
        ensure_slot_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    return utc_now


def to_http_exception(exc: SchedulingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())
