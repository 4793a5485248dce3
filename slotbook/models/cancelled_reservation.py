"""Cancelled reservation history."""

from sqlalchemy import Column, ForeignKey, Integer, String

from slotbook.database import Base, UTCDateTime
from slotbook.models.slot import new_slot_id


class CancelledReservation(Base):
    """A reservation cancelled before its slot started.

    The slot itself goes back to FREE, so the patient and tenant it carried are
    kept here. Rows are append-only.
    """
    __tablename__ = "cancelled_reservations"

    id = Column(String(36), primary_key=True, default=new_slot_id)
    slot_id = Column(String(36), ForeignKey("slots.id"), nullable=False, index=True)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False)
    staff_user_id = Column(String(64), nullable=False)
    patient_user_id = Column(String(64), nullable=False, index=True)
    org_id = Column(String(64), index=True)
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    specialty = Column(String(40))
    notes = Column(String(600))
    reserved_at = Column(UTCDateTime)
    confirmed_at = Column(UTCDateTime)
    cancel_reason = Column(String(600))
    cancelled_at = Column(UTCDateTime, nullable=False)
