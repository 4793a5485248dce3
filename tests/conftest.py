import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from slotbook.database import Base  # noqa: E402
from slotbook.models.cancelled_reservation import CancelledReservation  # noqa: E402
from slotbook.models.center import Center  # noqa: E402
from slotbook.models.slot import Slot, SlotStatus, new_slot_id  # noqa: E402


def _build_session_factory(url: str):
    engine = create_engine(url)
    Base.metadata.create_all(bind=engine, tables=[Center.__table__, Slot.__table__, CancelledReservation.__table__])
    return engine, sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def slot_db():
    engine, testing_session_local = _build_session_factory('sqlite:///:memory:')

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=[CancelledReservation.__table__, Slot.__table__, Center.__table__])


@pytest.fixture
def session_factory(tmp_path):
    """Independent sessions on separate connections to one file database."""
    engine, testing_session_local = _build_session_factory(f"sqlite:///{tmp_path / 'slots.db'}")
    try:
        yield testing_session_local
    finally:
        engine.dispose()


@pytest.fixture
def center(slot_db):
    center = Center(id=1, name='Centro Norte')
    slot_db.add(center)
    slot_db.commit()
    return center


@pytest.fixture
def add_slot(slot_db, center):
    def _add_slot(
        start_at: datetime,
        end_at: datetime,
        staff_user_id: str = 'staff-1',
        status: SlotStatus = SlotStatus.FREE,
        reserved_by_id: str | None = None,
        center_id: int | None = None,
        specialty: str | None = None,
        org_id: str | None = None,
    ) -> Slot:
        slot = Slot(
            id=new_slot_id(),
            center_id=center_id or center.id,
            staff_user_id=staff_user_id,
            start_at=start_at,
            end_at=end_at,
            status=status.value,
            reserved_by_id=reserved_by_id,
            specialty=specialty,
            org_id=org_id,
        )
        slot_db.add(slot)
        slot_db.commit()
        slot_db.refresh(slot)
        return slot

    return _add_slot
