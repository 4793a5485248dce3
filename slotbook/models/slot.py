"""Slot model definitions."""

import uuid
from enum import Enum

from sqlalchemy import Column, ForeignKey, Index, Integer, String, text

from slotbook.core.time_range import utc_now
from slotbook.database import Base, UTCDateTime


class SlotStatus(str, Enum):
    FREE = 'FREE'
    RESERVED = 'RESERVED'
    CONFIRMED = 'CONFIRMED'
    CANCELLED = 'CANCELLED'


ACTIVE_RESERVATION_STATUSES = (SlotStatus.RESERVED.value, SlotStatus.CONFIRMED.value)


class Specialty(str, Enum):
    CLINICA_MEDICA = 'CLINICA_MEDICA'
    CARDIOLOGIA = 'CARDIOLOGIA'
    PEDIATRIA = 'PEDIATRIA'
    GINECOLOGIA = 'GINECOLOGIA'
    OBSTETRICIA = 'OBSTETRICIA'
    TRAUMATOLOGIA = 'TRAUMATOLOGIA'
    DERMATOLOGIA = 'DERMATOLOGIA'
    NEUROLOGIA = 'NEUROLOGIA'
    PSICOLOGIA = 'PSICOLOGIA'
    PSIQUIATRIA = 'PSIQUIATRIA'
    ODONTOLOGIA = 'ODONTOLOGIA'
    KINESIOLOGIA = 'KINESIOLOGIA'
    NUTRICION = 'NUTRICION'
    FONOAUDIOLOGIA = 'FONOAUDIOLOGIA'
    OFTALMOLOGIA = 'OFTALMOLOGIA'
    OTORRINOLARINGOLOGIA = 'OTORRINOLARINGOLOGIA'
    UROLOGIA = 'UROLOGIA'


def new_slot_id() -> str:
    return str(uuid.uuid4())


class Slot(Base):
    """A bookable unit of staff time."""
    __tablename__ = "slots"
    __table_args__ = (
        Index('idx_slots_staff_range', 'staff_user_id', 'start_at', 'end_at'),
        Index('idx_slots_center_start', 'center_id', 'start_at'),
        # one live slot per staff member and start instant; cancelled history rows are exempt
        Index(
            'uq_slots_staff_start_active',
            'staff_user_id',
            'start_at',
            unique=True,
            postgresql_where=text("status <> 'CANCELLED'"),
            sqlite_where=text("status <> 'CANCELLED'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_slot_id)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False)
    staff_user_id = Column(String(64), nullable=False)
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    status = Column(String(20), nullable=False, default=SlotStatus.FREE.value)
    specialty = Column(String(40))

    reserved_by_id = Column(String(64), index=True)
    org_id = Column(String(64), index=True)
    notes = Column(String(600))
    reserved_at = Column(UTCDateTime)
    confirmed_at = Column(UTCDateTime)

    cancel_reason = Column(String(600))
    cancelled_at = Column(UTCDateTime)

    created_at = Column(UTCDateTime, default=utc_now)
