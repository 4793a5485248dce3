"""Reservation state machine over slots.

    FREE --reserve--> RESERVED --confirm--> CONFIRMED
    RESERVED | CONFIRMED --cancel--> FREE       (slot starts in the future; reservation kept as history)
    RESERVED | CONFIRMED --cancel--> CANCELLED  (slot already started, terminal)

Every transition is a single guarded ``UPDATE`` through
:func:`slotbook.services.slot_store.compare_and_set`; whichever request
commits first wins and the loser observes zero affected rows.
"""

import logging

from sqlalchemy.orm import Session

from slotbook.core.errors import (
    AlreadyCancelledError,
    AlreadyTakenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    NotReservedError,
    SchedulingError,
)
from slotbook.core.time_range import Clock, to_utc, utc_now
from slotbook.models.cancelled_reservation import CancelledReservation
from slotbook.models.slot import ACTIVE_RESERVATION_STATUSES, Slot, SlotStatus
from slotbook.services import slot_store

logger = logging.getLogger(__name__)


def _reload(db: Session, slot_id: str) -> Slot:
    with slot_store.reading(db):
        return slot_store.get_slot(db, slot_id)


def _org_criteria(org_id: str | None) -> tuple:
    if org_id is None:
        return ()
    return (Slot.org_id == org_id,)


def _transition_error(slot: Slot, org_id: str | None, action: str) -> SchedulingError:
    if org_id is not None and slot.org_id != org_id:
        return NotFoundError('Slot not found.')
    if slot.status == SlotStatus.CANCELLED.value:
        return AlreadyCancelledError('The reservation is already cancelled.')
    if slot.status == SlotStatus.FREE.value or slot.reserved_by_id is None:
        return NotReservedError('The slot is not reserved.')
    return InvalidStateError(f'Cannot {action} a slot in status {slot.status}.')


def reserve(
    db: Session,
    slot_id: str,
    patient_user_id: str,
    notes: str | None = None,
    org_id: str | None = None,
    clock: Clock = utc_now,
) -> Slot:
    if not patient_user_id or not patient_user_id.strip():
        raise InvalidInputError('patient_user_id is required.')

    now = to_utc(clock())

    with slot_store.transaction(db):
        taken = slot_store.compare_and_set(
            db,
            slot_id,
            [SlotStatus.FREE.value],
            {
                Slot.status: SlotStatus.RESERVED.value,
                Slot.reserved_by_id: patient_user_id.strip(),
                Slot.notes: notes,
                Slot.org_id: org_id,
                Slot.reserved_at: now,
                Slot.confirmed_at: None,
                Slot.cancel_reason: None,
                Slot.cancelled_at: None,
            },
        )
        if not taken:
            if not slot_store.slot_exists(db, slot_id):
                raise NotFoundError('Slot not found.')
            logger.warning('Reservation of slot %s by %s lost: slot not free.', slot_id, patient_user_id)
            raise AlreadyTakenError('The slot was already taken or is not available.')

    logger.info('Slot %s reserved by %s.', slot_id, patient_user_id)
    return _reload(db, slot_id)


def confirm(db: Session, slot_id: str, org_id: str | None = None, clock: Clock = utc_now) -> Slot:
    now = to_utc(clock())

    with slot_store.transaction(db):
        confirmed = slot_store.compare_and_set(
            db,
            slot_id,
            ACTIVE_RESERVATION_STATUSES,
            {
                Slot.status: SlotStatus.CONFIRMED.value,
                Slot.confirmed_at: now,
            },
            Slot.reserved_by_id.is_not(None),
            *_org_criteria(org_id),
        )
        if not confirmed:
            raise _transition_error(slot_store.get_slot(db, slot_id), org_id, 'confirm')

    logger.info('Slot %s confirmed.', slot_id)
    return _reload(db, slot_id)


def cancel(
    db: Session,
    slot_id: str,
    reason: str | None = None,
    org_id: str | None = None,
    clock: Clock = utc_now,
) -> Slot:
    """Cancel a reservation.

    A slot that has not started yet goes back to FREE and the reservation it
    carried is moved to :class:`CancelledReservation`; one that has already
    started becomes CANCELLED and keeps its patient. The branch follows the
    clock, not the caller.
    """
    now = to_utc(clock())

    with slot_store.transaction(db):
        slot = slot_store.get_slot(db, slot_id)
        criteria = _org_criteria(org_id)
        if slot.start_at > now:
            next_status = SlotStatus.FREE
            # the history row copies this snapshot, so the update must not land on a newer reservation
            criteria += (
                Slot.reserved_by_id == slot.reserved_by_id,
                Slot.reserved_at == slot.reserved_at,
            )
            values = {
                Slot.status: SlotStatus.FREE.value,
                Slot.reserved_by_id: None,
                Slot.notes: None,
                Slot.org_id: None,
                Slot.reserved_at: None,
                Slot.confirmed_at: None,
                Slot.cancel_reason: reason,
                Slot.cancelled_at: now,
            }
        else:
            next_status = SlotStatus.CANCELLED
            values = {
                Slot.status: SlotStatus.CANCELLED.value,
                Slot.cancel_reason: reason,
                Slot.cancelled_at: now,
            }

        cancelled = slot_store.compare_and_set(
            db,
            slot_id,
            ACTIVE_RESERVATION_STATUSES,
            values,
            *criteria,
        )
        if not cancelled:
            raise _transition_error(slot_store.get_slot(db, slot_id), org_id, 'cancel')

        if next_status == SlotStatus.FREE:
            slot_store.add_cancelled_reservation(
                db,
                CancelledReservation(
                    slot_id=slot.id,
                    center_id=slot.center_id,
                    staff_user_id=slot.staff_user_id,
                    patient_user_id=slot.reserved_by_id,
                    org_id=slot.org_id,
                    start_at=slot.start_at,
                    end_at=slot.end_at,
                    specialty=slot.specialty,
                    notes=slot.notes,
                    reserved_at=slot.reserved_at,
                    confirmed_at=slot.confirmed_at,
                    cancel_reason=reason,
                    cancelled_at=now,
                ),
            )

    logger.info('Slot %s cancelled, now %s.', slot_id, next_status.value)
    return _reload(db, slot_id)
