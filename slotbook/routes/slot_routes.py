from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from slotbook.core.errors import SchedulingError
from slotbook.core.time_range import Clock
from slotbook.models.slot import SlotStatus, Specialty
from slotbook.routes.dependencies import ensure_database_ready, get_clock, get_db, to_http_exception
from slotbook.services import appointment_view, reservations, slot_generator
from slotbook.services.appointment_view import SlotFilters
from slotbook.services.slot_generator import BulkResult, SlotRange

router = APIRouter(tags=['slots'])

MAX_NOTES_LENGTH = 600
MAX_CANCEL_REASON_LENGTH = 600


def _normalize_optional_text(value: str | None, max_length: int, field_name: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > max_length:
        raise ValueError(f'{field_name} must be {max_length} characters or fewer.')

    return normalized


class CreateSlotRequest(BaseModel):
    center_id: int
    staff_user_id: str
    specialty: Specialty | None = None
    schedule: SlotRange

    @field_validator('staff_user_id')
    @classmethod
    def validate_staff_user_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('staff_user_id is required.')
        return normalized


class ReserveSlotRequest(BaseModel):
    patient_user_id: str
    notes: str | None = None
    org_id: str | None = None

    @field_validator('patient_user_id')
    @classmethod
    def validate_patient_user_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('patient_user_id is required.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_NOTES_LENGTH, 'Notes')


class CancelSlotRequest(BaseModel):
    reason: str | None = None
    org_id: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_CANCEL_REASON_LENGTH, 'Cancel reason')


class SlotResponse(BaseModel):
    id: str
    center_id: int
    staff_user_id: str
    start_at: datetime
    end_at: datetime
    status: SlotStatus
    specialty: Specialty | None = None
    reserved_by_id: str | None = None
    org_id: str | None = None
    notes: str | None = None
    reserved_at: datetime | None = None
    confirmed_at: datetime | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None

    class Config:
        from_attributes = True


@router.post('', response_model=SlotResponse | BulkResult, status_code=status.HTTP_201_CREATED)
def create_slot(data: CreateSlotRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        created = slot_generator.create_slots(
            db,
            center_id=data.center_id,
            staff_user_id=data.staff_user_id,
            slot_range=data.schedule,
            specialty=data.specialty,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if isinstance(created, BulkResult):
        return created
    return SlotResponse.model_validate(created)


@router.get('', response_model=list[SlotResponse])
def list_slots(
    center_id: int | None = None,
    staff_user_id: str | None = None,
    patient_user_id: str | None = None,
    status: SlotStatus | None = None,
    specialty: Specialty | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    filters = SlotFilters(
        center_id=center_id,
        staff_user_id=staff_user_id,
        patient_user_id=patient_user_id,
        status=status,
        specialty=specialty,
        date_from=date_from,
        date_to=date_to,
    )
    try:
        slots = appointment_view.list_slots(db, filters)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [SlotResponse.model_validate(slot) for slot in slots]


@router.get('/{slot_id}', response_model=SlotResponse)
def get_slot(slot_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        slot = appointment_view.get_slot(db, slot_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return SlotResponse.model_validate(slot)


@router.post('/{slot_id}/reserve', response_model=SlotResponse)
def reserve_slot(
    slot_id: str,
    data: ReserveSlotRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        slot = reservations.reserve(
            db,
            slot_id,
            data.patient_user_id,
            notes=data.notes,
            org_id=data.org_id,
            clock=clock,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return SlotResponse.model_validate(slot)


@router.post('/{slot_id}/confirm', response_model=SlotResponse)
def confirm_slot(
    slot_id: str,
    org_id: str | None = None,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        slot = reservations.confirm(db, slot_id, org_id=org_id, clock=clock)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return SlotResponse.model_validate(slot)


@router.post('/{slot_id}/cancel', response_model=SlotResponse)
def cancel_slot(
    slot_id: str,
    data: CancelSlotRequest | None = None,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    data = data or CancelSlotRequest()
    try:
        slot = reservations.cancel(db, slot_id, reason=data.reason, org_id=data.org_id, clock=clock)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return SlotResponse.model_validate(slot)
