"""Read-only projections over slots.

An appointment is either a slot that carries a patient, whose status is the
slot's own status and whose id is the slot id, or a reservation cancelled
before its slot started, kept in :class:`CancelledReservation` with status
CANCELLED and its own id. Both are seen through :class:`AppointmentView`.
"""

from datetime import datetime

from pydantic import BaseModel
from sqlalchemy.orm import Query, Session

from slotbook.core.errors import InvalidInputError, NotFoundError
from slotbook.core.time_range import to_utc
from slotbook.models.cancelled_reservation import CancelledReservation
from slotbook.models.slot import Slot, SlotStatus, Specialty
from slotbook.services import slot_store

APPOINTMENT_STATUSES = (SlotStatus.RESERVED, SlotStatus.CONFIRMED, SlotStatus.CANCELLED)


class SlotFilters(BaseModel):
    center_id: int | None = None
    staff_user_id: str | None = None
    patient_user_id: str | None = None
    status: SlotStatus | None = None
    specialty: Specialty | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class AppointmentView(BaseModel):
    id: str
    slot_id: str
    org_id: str | None = None
    center_id: int
    patient_user_id: str
    staff_user_id: str
    start_at: datetime
    end_at: datetime
    status: SlotStatus
    specialty: Specialty | None = None
    notes: str | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None

    @classmethod
    def from_slot(cls, slot: Slot) -> 'AppointmentView':
        return cls(
            id=slot.id,
            slot_id=slot.id,
            org_id=slot.org_id,
            center_id=slot.center_id,
            patient_user_id=slot.reserved_by_id,
            staff_user_id=slot.staff_user_id,
            start_at=slot.start_at,
            end_at=slot.end_at,
            status=slot.status,
            specialty=slot.specialty,
            notes=slot.notes,
            cancel_reason=slot.cancel_reason,
            cancelled_at=slot.cancelled_at,
        )

    @classmethod
    def from_cancellation(cls, record: CancelledReservation) -> 'AppointmentView':
        return cls(
            id=record.id,
            slot_id=record.slot_id,
            org_id=record.org_id,
            center_id=record.center_id,
            patient_user_id=record.patient_user_id,
            staff_user_id=record.staff_user_id,
            start_at=record.start_at,
            end_at=record.end_at,
            status=SlotStatus.CANCELLED,
            specialty=record.specialty,
            notes=record.notes,
            cancel_reason=record.cancel_reason,
            cancelled_at=record.cancelled_at,
        )


def _apply_filters(query: Query, filters: SlotFilters, model=Slot, patient_column=Slot.reserved_by_id) -> Query:
    if filters.center_id is not None:
        query = query.filter(model.center_id == filters.center_id)
    if filters.staff_user_id:
        query = query.filter(model.staff_user_id == filters.staff_user_id)
    if filters.patient_user_id:
        query = query.filter(patient_column == filters.patient_user_id)
    if filters.status is not None and model is Slot:
        query = query.filter(Slot.status == filters.status.value)
    if filters.specialty is not None:
        query = query.filter(model.specialty == filters.specialty.value)

    date_from = to_utc(filters.date_from) if filters.date_from else None
    date_to = to_utc(filters.date_to) if filters.date_to else None
    if date_from and date_to and date_from > date_to:
        raise InvalidInputError('date_from must not be after date_to.')
    if date_from:
        query = query.filter(model.start_at >= date_from)
    if date_to:
        query = query.filter(model.start_at <= date_to)

    return query.order_by(model.start_at.asc(), model.id.asc())


def list_slots(db: Session, filters: SlotFilters) -> list[Slot]:
    with slot_store.reading(db):
        return _apply_filters(db.query(Slot), filters).all()


def get_slot(db: Session, slot_id: str) -> Slot:
    with slot_store.reading(db):
        return slot_store.get_slot(db, slot_id)


def list_appointments(db: Session, filters: SlotFilters, org_id: str | None = None) -> list[AppointmentView]:
    if filters.status is not None and filters.status not in APPOINTMENT_STATUSES:
        raise InvalidInputError(f'Appointments cannot have status {filters.status.value}.')

    with slot_store.reading(db):
        query = db.query(Slot).filter(Slot.reserved_by_id.is_not(None))
        if org_id is not None:
            query = query.filter(Slot.org_id == org_id)
        appointments = [AppointmentView.from_slot(slot) for slot in _apply_filters(query, filters).all()]

        if filters.status in (None, SlotStatus.CANCELLED):
            history = db.query(CancelledReservation)
            if org_id is not None:
                history = history.filter(CancelledReservation.org_id == org_id)
            history = _apply_filters(
                history, filters, model=CancelledReservation, patient_column=CancelledReservation.patient_user_id
            )
            appointments.extend(AppointmentView.from_cancellation(record) for record in history.all())

    return sorted(appointments, key=lambda appointment: (appointment.start_at, appointment.id))


def get_appointment(db: Session, appointment_id: str, org_id: str | None = None) -> AppointmentView:
    with slot_store.reading(db):
        query = db.query(Slot).filter(
            Slot.id == appointment_id,
            Slot.reserved_by_id.is_not(None),
        )
        if org_id is not None:
            query = query.filter(Slot.org_id == org_id)
        slot = query.first()
        if slot is not None:
            return AppointmentView.from_slot(slot)

        history = db.query(CancelledReservation).filter(CancelledReservation.id == appointment_id)
        if org_id is not None:
            history = history.filter(CancelledReservation.org_id == org_id)
        record = history.first()

    if record is None:
        raise NotFoundError('Appointment not found.')
    return AppointmentView.from_cancellation(record)
