"""Persistence primitives for slot records.

Everything that mutates a slot after creation goes through
:func:`compare_and_set`, a single conditional ``UPDATE`` whose row count
tells the caller whether its guard still held when the write landed.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable, Iterator

from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core.errors import (
    ConflictError,
    InvalidReferenceError,
    NotFoundError,
    SchedulingError,
    StorageError,
)
from slotbook.models.cancelled_reservation import CancelledReservation
from slotbook.models.center import Center
from slotbook.models.slot import Slot, SlotStatus

logger = logging.getLogger(__name__)

BULK_INSERT_CHUNK_SIZE = 100
DATABASE_UNAVAILABLE_MESSAGE = 'Database unavailable. Verify DATABASE_URL and database credentials.'
DUPLICATE_START_MESSAGE = 'A slot already starts at that time for this staff member.'
UNKNOWN_CENTER_MESSAGE = 'center_id is invalid (the center does not exist).'


def _is_foreign_key_violation(exc: IntegrityError) -> bool:
    sqlstate = getattr(exc.orig, 'pgcode', None) or getattr(exc.orig, 'sqlstate', None)
    if sqlstate:
        return sqlstate == '23503'
    return 'foreign key' in str(exc.orig).lower()


def integrity_error_to_domain(exc: IntegrityError) -> SchedulingError:
    if _is_foreign_key_violation(exc):
        return InvalidReferenceError(UNKNOWN_CENTER_MESSAGE)
    return ConflictError(DUPLICATE_START_MESSAGE)


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit on success; roll back and translate storage failures otherwise."""
    try:
        yield db
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.warning('Slot write rejected by a storage constraint: %s', exc.orig)
        raise integrity_error_to_domain(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Slot store write failed.')
        raise StorageError(DATABASE_UNAVAILABLE_MESSAGE) from exc
    except Exception:
        db.rollback()
        raise


@contextmanager
def reading(db: Session) -> Iterator[Session]:
    try:
        yield db
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Slot store read failed.')
        raise StorageError(DATABASE_UNAVAILABLE_MESSAGE) from exc


def get_slot(db: Session, slot_id: str) -> Slot:
    slot = db.query(Slot).filter(Slot.id == slot_id).populate_existing().first()
    if slot is None:
        raise NotFoundError('Slot not found.')
    return slot


def slot_exists(db: Session, slot_id: str) -> bool:
    return db.query(Slot.id).filter(Slot.id == slot_id).first() is not None


def center_exists(db: Session, center_id: int) -> bool:
    return db.query(Center.id).filter(Center.id == center_id).first() is not None


def find_overlapping_slot(db: Session, staff_user_id: str, start_at: datetime, end_at: datetime) -> Slot | None:
    """First non-cancelled slot of the staff member overlapping [start_at, end_at), in any center.

    The filter is :func:`slotbook.core.time_range.overlaps` written as SQL; this
    query is what creation paths rely on.
    """
    return db.query(Slot).filter(
        Slot.staff_user_id == staff_user_id,
        Slot.status != SlotStatus.CANCELLED.value,
        Slot.start_at < end_at,
        Slot.end_at > start_at,
    ).order_by(Slot.start_at.asc()).first()


def add_slot(db: Session, slot: Slot) -> Slot:
    db.add(slot)
    db.flush()
    return slot


def add_cancelled_reservation(db: Session, record: CancelledReservation) -> CancelledReservation:
    db.add(record)
    db.flush()
    return record


def _insert_ignoring_conflicts(db: Session, rows: list[dict[str, Any]]) -> int:
    dialect_name = db.get_bind().dialect.name

    if dialect_name == 'postgresql':
        statement = postgresql.insert(Slot).values(rows).on_conflict_do_nothing()
    elif dialect_name == 'sqlite':
        statement = sqlite.insert(Slot).values(rows).on_conflict_do_nothing()
    else:
        created = 0
        for row in rows:
            try:
                with db.begin_nested():
                    db.execute(insert(Slot).values(**row))
            except IntegrityError as exc:
                if _is_foreign_key_violation(exc):
                    raise
                continue
            created += 1
        return created

    return db.execute(statement).rowcount


def insert_slots_skip_duplicates(db: Session, rows: list[dict[str, Any]]) -> int:
    """Insert rows in the caller's transaction, silently skipping uniqueness collisions.

    Returns the number of rows actually written.
    """
    created = 0
    for offset in range(0, len(rows), BULK_INSERT_CHUNK_SIZE):
        created += _insert_ignoring_conflicts(db, rows[offset:offset + BULK_INSERT_CHUNK_SIZE])
    return created


def compare_and_set(
    db: Session,
    slot_id: str,
    expected_statuses: Iterable[str],
    values: dict,
    *criteria,
) -> bool:
    """Atomically apply ``values`` if the slot's status is still one of ``expected_statuses``.

    This is one ``UPDATE ... WHERE`` statement; it never reads the row first.
    """
    updated = db.query(Slot).filter(
        Slot.id == slot_id,
        Slot.status.in_(list(expected_statuses)),
        *criteria,
    ).update(values, synchronize_session=False)
    return updated == 1
