"""Slot creation: a single explicit range, or a daily agenda expanded over several days.

Agenda creation checks for conflicts once, against the whole window covered by
the agenda, and then inserts the batch. The check and the insert share one
transaction but are not serialized per staff member, so two concurrent agenda
requests for the same staff member can both pass the check. The partial
unique index on ``(staff_user_id, start_at)`` catches identical starts; it does
not catch partial overlaps between differently sized slots. This is a known,
accepted limitation.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from slotbook.core.errors import ConflictError, InvalidInputError, InvalidReferenceError
from slotbook.core.time_range import ONE_DAY, combine_utc, to_utc, utc_now
from slotbook.models.slot import Slot, SlotStatus, Specialty, new_slot_id
from slotbook.services import slot_store

logger = logging.getLogger(__name__)


class SingleRange(BaseModel):
    mode: Literal['single'] = 'single'
    start_at: datetime
    end_at: datetime


class Agenda(BaseModel):
    mode: Literal['agenda'] = 'agenda'
    start_date: date
    work_start_time: time
    work_end_time: time
    slot_duration_min: int = Field(gt=0)
    days: int = Field(ge=1)


SlotRange = Annotated[Union[SingleRange, Agenda], Field(discriminator='mode')]


class BulkResult(BaseModel):
    mode: Literal['BULK'] = 'BULK'
    requested: int
    created: int
    per_day: int
    days: int
    specialty: Specialty | None = None


@dataclass
class AgendaPlan:
    window_start: datetime
    window_end: datetime
    per_day: int
    ranges: list[tuple[datetime, datetime]] = field(default_factory=list)


def plan_agenda(agenda: Agenda) -> AgendaPlan:
    """Expand an agenda into consecutive slot ranges without touching storage.

    A trailing slot that would run past the end of the working day is dropped,
    never truncated.
    """
    day_start0 = combine_utc(agenda.start_date, agenda.work_start_time)
    day_end0 = combine_utc(agenda.start_date, agenda.work_end_time)

    if not day_start0 < day_end0:
        raise InvalidInputError('work_end_time must be after work_start_time.')
    if agenda.slot_duration_min <= 0:
        raise InvalidInputError('slot_duration_min must be positive.')
    if agenda.days < 1:
        raise InvalidInputError('days must be at least 1.')

    duration = timedelta(minutes=agenda.slot_duration_min)
    plan = AgendaPlan(
        window_start=day_start0,
        window_end=day_end0 + (agenda.days - 1) * ONE_DAY,
        per_day=(day_end0 - day_start0) // duration,
    )

    for day_offset in range(agenda.days):
        day_start = day_start0 + day_offset * ONE_DAY
        day_end = day_end0 + day_offset * ONE_DAY
        slot_start = day_start
        while slot_start + duration <= day_end:
            plan.ranges.append((slot_start, slot_start + duration))
            slot_start += duration

    return plan


def _require_center(db: Session, center_id: int) -> None:
    if not slot_store.center_exists(db, center_id):
        raise InvalidReferenceError(slot_store.UNKNOWN_CENTER_MESSAGE)


def create_single_slot(
    db: Session,
    center_id: int,
    staff_user_id: str,
    slot_range: SingleRange,
    specialty: Specialty | None = None,
) -> Slot:
    start_at = to_utc(slot_range.start_at)
    end_at = to_utc(slot_range.end_at)
    if not start_at < end_at:
        raise InvalidInputError('end_at must be after start_at.')

    with slot_store.transaction(db):
        _require_center(db, center_id)

        overlapping = slot_store.find_overlapping_slot(db, staff_user_id, start_at, end_at)
        if overlapping is not None:
            logger.warning(
                'Rejected slot for staff %s at %s: overlaps slot %s.', staff_user_id, start_at, overlapping.id
            )
            raise ConflictError('The staff member already has an overlapping slot in that range.')

        slot = slot_store.add_slot(
            db,
            Slot(
                id=new_slot_id(),
                center_id=center_id,
                staff_user_id=staff_user_id,
                start_at=start_at,
                end_at=end_at,
                status=SlotStatus.FREE.value,
                specialty=specialty.value if specialty else None,
            ),
        )

    with slot_store.reading(db):
        db.refresh(slot)

    logger.info('Created slot %s for staff %s in center %s.', slot.id, staff_user_id, center_id)
    return slot


def generate_agenda(
    db: Session,
    center_id: int,
    staff_user_id: str,
    agenda: Agenda,
    specialty: Specialty | None = None,
) -> BulkResult:
    plan = plan_agenda(agenda)

    with slot_store.transaction(db):
        _require_center(db, center_id)

        conflict = slot_store.find_overlapping_slot(db, staff_user_id, plan.window_start, plan.window_end)
        if conflict is not None:
            logger.warning(
                'Rejected agenda for staff %s: slot %s overlaps %s - %s.',
                staff_user_id,
                conflict.id,
                plan.window_start,
                plan.window_end,
            )
            raise ConflictError('The staff member has slots overlapping the requested agenda.')

        created_at = utc_now()
        rows = [
            {
                'id': new_slot_id(),
                'center_id': center_id,
                'staff_user_id': staff_user_id,
                'start_at': slot_start,
                'end_at': slot_end,
                'status': SlotStatus.FREE.value,
                'specialty': specialty.value if specialty else None,
                'created_at': created_at,
            }
            for slot_start, slot_end in plan.ranges
        ]
        created = slot_store.insert_slots_skip_duplicates(db, rows)

    logger.info(
        'Generated agenda for staff %s in center %s: %s of %s slots created.',
        staff_user_id,
        center_id,
        created,
        len(rows),
    )
    return BulkResult(
        requested=len(rows),
        created=created,
        per_day=plan.per_day,
        days=agenda.days,
        specialty=specialty,
    )


def create_slots(
    db: Session,
    center_id: int,
    staff_user_id: str,
    slot_range: SingleRange | Agenda,
    specialty: Specialty | None = None,
) -> Slot | BulkResult:
    if isinstance(slot_range, SingleRange):
        return create_single_slot(db, center_id, staff_user_id, slot_range, specialty)
    return generate_agenda(db, center_id, staff_user_id, agenda=slot_range, specialty=specialty)
