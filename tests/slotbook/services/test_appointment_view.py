from datetime import datetime, timezone

import pytest

from slotbook.core.errors import InvalidInputError, NotFoundError
from slotbook.models.center import Center
from slotbook.models.slot import SlotStatus, Specialty
from slotbook.services import appointment_view, reservations
from slotbook.services.appointment_view import SlotFilters


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def agenda_slots(slot_db, add_slot):
    slot_db.add(Center(id=2, name='Centro Sur'))
    slot_db.commit()
    return {
        'late': add_slot(utc(2025, 9, 3, 9, 0), utc(2025, 9, 3, 9, 30)),
        'early': add_slot(utc(2025, 9, 1, 9, 0), utc(2025, 9, 1, 9, 30), status=SlotStatus.RESERVED, reserved_by_id='p-1', org_id='org-1'),
        'middle': add_slot(
            utc(2025, 9, 2, 9, 0),
            utc(2025, 9, 2, 9, 30),
            staff_user_id='staff-2',
            center_id=2,
            status=SlotStatus.CONFIRMED,
            reserved_by_id='p-2',
            specialty=Specialty.DERMATOLOGIA.value,
            org_id='org-2',
        ),
        'history': add_slot(utc(2025, 9, 2, 18, 0), utc(2025, 9, 2, 18, 30), status=SlotStatus.CANCELLED, reserved_by_id='p-1', org_id='org-1'),
    }


def _ids(slots) -> list[str]:
    return [slot.id for slot in slots]


def test_list_slots_orders_by_start(slot_db, agenda_slots) -> None:
    slots = appointment_view.list_slots(slot_db, SlotFilters())

    assert _ids(slots) == _ids([agenda_slots['early'], agenda_slots['middle'], agenda_slots['history'], agenda_slots['late']])


def test_list_slots_date_range_is_inclusive(slot_db, agenda_slots) -> None:
    slots = appointment_view.list_slots(
        slot_db, SlotFilters(date_from=utc(2025, 9, 1, 9, 0), date_to=utc(2025, 9, 2, 18, 0))
    )

    assert _ids(slots) == _ids([agenda_slots['early'], agenda_slots['middle'], agenda_slots['history']])


def test_list_slots_treats_naive_bounds_as_utc(slot_db, agenda_slots) -> None:
    slots = appointment_view.list_slots(slot_db, SlotFilters(date_from=datetime(2025, 9, 3, 9, 0)))

    assert _ids(slots) == [agenda_slots['late'].id]


def test_list_slots_rejects_inverted_date_range(slot_db, agenda_slots) -> None:
    with pytest.raises(InvalidInputError):
        appointment_view.list_slots(slot_db, SlotFilters(date_from=utc(2025, 9, 3), date_to=utc(2025, 9, 1)))


@pytest.mark.parametrize(
    ('filters', 'expected'),
    [
        ({'center_id': 2}, ['middle']),
        ({'staff_user_id': 'staff-1'}, ['early', 'history', 'late']),
        ({'patient_user_id': 'p-1'}, ['early', 'history']),
        ({'status': SlotStatus.FREE}, ['late']),
        ({'specialty': Specialty.DERMATOLOGIA}, ['middle']),
    ],
)
def test_list_slots_filters(slot_db, agenda_slots, filters, expected) -> None:
    slots = appointment_view.list_slots(slot_db, SlotFilters(**filters))

    assert _ids(slots) == [agenda_slots[name].id for name in expected]


def test_get_slot_raises_not_found(slot_db, center) -> None:
    with pytest.raises(NotFoundError):
        appointment_view.get_slot(slot_db, 'missing')


def test_list_appointments_excludes_slots_without_patient(slot_db, agenda_slots) -> None:
    appointments = appointment_view.list_appointments(slot_db, SlotFilters())

    assert [appointment.id for appointment in appointments] == _ids(
        [agenda_slots['early'], agenda_slots['middle'], agenda_slots['history']]
    )
    assert appointments[0].patient_user_id == 'p-1'
    assert appointments[0].slot_id == agenda_slots['early'].id
    assert appointments[0].status == SlotStatus.RESERVED


def test_list_appointments_scopes_by_org(slot_db, agenda_slots) -> None:
    appointments = appointment_view.list_appointments(slot_db, SlotFilters(), org_id='org-1')

    assert [appointment.id for appointment in appointments] == _ids([agenda_slots['early'], agenda_slots['history']])


def test_list_appointments_filters_by_canonical_status(slot_db, agenda_slots) -> None:
    appointments = appointment_view.list_appointments(slot_db, SlotFilters(status=SlotStatus.CANCELLED))

    assert [appointment.id for appointment in appointments] == [agenda_slots['history'].id]


def test_list_appointments_rejects_free_status(slot_db, agenda_slots) -> None:
    with pytest.raises(InvalidInputError):
        appointment_view.list_appointments(slot_db, SlotFilters(status=SlotStatus.FREE))


def test_get_appointment_projects_slot(slot_db, agenda_slots) -> None:
    appointment = appointment_view.get_appointment(slot_db, agenda_slots['middle'].id)

    assert appointment.center_id == 2
    assert appointment.staff_user_id == 'staff-2'
    assert appointment.patient_user_id == 'p-2'
    assert appointment.status == SlotStatus.CONFIRMED
    assert appointment.specialty == Specialty.DERMATOLOGIA
    assert appointment.start_at == utc(2025, 9, 2, 9, 0)


@pytest.mark.parametrize(('name', 'org_id'), [('late', None), ('middle', 'org-1')])
def test_get_appointment_raises_not_found(slot_db, agenda_slots, name: str, org_id: str | None) -> None:
    with pytest.raises(NotFoundError):
        appointment_view.get_appointment(slot_db, agenda_slots[name].id, org_id=org_id)


@pytest.fixture
def cancelled_ahead(slot_db, add_slot):
    slot = add_slot(utc(2025, 9, 4, 9, 0), utc(2025, 9, 4, 9, 30))
    reservations.reserve(slot_db, slot.id, 'p-3', notes='Control', org_id='org-1')
    reservations.cancel(slot_db, slot.id, reason='Travel', clock=lambda: utc(2025, 9, 1, 8, 0))
    return slot


def test_cancelled_future_reservation_stays_listed(slot_db, agenda_slots, cancelled_ahead) -> None:
    appointments = appointment_view.list_appointments(
        slot_db, SlotFilters(status=SlotStatus.CANCELLED), org_id='org-1'
    )

    assert [appointment.slot_id for appointment in appointments] == [agenda_slots['history'].id, cancelled_ahead.id]
    kept = appointments[1]
    assert kept.id != cancelled_ahead.id
    assert kept.status == SlotStatus.CANCELLED
    assert kept.patient_user_id == 'p-3'
    assert kept.notes == 'Control'
    assert kept.cancel_reason == 'Travel'
    assert kept.cancelled_at == utc(2025, 9, 1, 8, 0)


def test_cancelled_future_reservation_respects_filters(slot_db, agenda_slots, cancelled_ahead) -> None:
    reserved = appointment_view.list_appointments(slot_db, SlotFilters(status=SlotStatus.RESERVED), org_id='org-1')
    other_org = appointment_view.list_appointments(slot_db, SlotFilters(), org_id='org-2')

    assert [appointment.id for appointment in reserved] == [agenda_slots['early'].id]
    assert [appointment.id for appointment in other_org] == [agenda_slots['middle'].id]
    assert [
        appointment.patient_user_id
        for appointment in appointment_view.list_appointments(slot_db, SlotFilters(date_from=utc(2025, 9, 4)))
    ] == ['p-3']


def test_get_appointment_finds_cancelled_future_reservation(slot_db, cancelled_ahead) -> None:
    listed = appointment_view.list_appointments(slot_db, SlotFilters(patient_user_id='p-3'))

    appointment = appointment_view.get_appointment(slot_db, listed[0].id, org_id='org-1')

    assert appointment.slot_id == cancelled_ahead.id
    assert appointment.status == SlotStatus.CANCELLED
    with pytest.raises(NotFoundError):
        appointment_view.get_appointment(slot_db, listed[0].id, org_id='org-2')
