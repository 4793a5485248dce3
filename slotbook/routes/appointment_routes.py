from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from slotbook.core.errors import SchedulingError
from slotbook.models.slot import SlotStatus, Specialty
from slotbook.routes.dependencies import ensure_database_ready, get_db, to_http_exception
from slotbook.services import appointment_view
from slotbook.services.appointment_view import AppointmentView, SlotFilters

router = APIRouter(tags=['appointments'])


@router.get('', response_model=list[AppointmentView])
def list_appointments(
    org_id: str | None = None,
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
        return appointment_view.list_appointments(db, filters, org_id=org_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/{appointment_id}', response_model=AppointmentView)
def get_appointment(appointment_id: str, org_id: str | None = None, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return appointment_view.get_appointment(db, appointment_id, org_id=org_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
