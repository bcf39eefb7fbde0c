"""Appointment model definitions."""

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, func, text
from sqlalchemy.orm import relationship

from marketplace.database import ACTIVE_SLOT_INDEX, Base

STATUS_SCHEDULED = 'scheduled'
STATUS_CONFIRMED = 'confirmed'
STATUS_CANCELLED = 'cancelled'
STATUS_COMPLETED = 'completed'
APPOINTMENT_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_COMPLETED)
# Appointments in these states occupy their slot.
ACTIVE_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED)

_ACTIVE_CLAUSE = text("status IN ('scheduled', 'confirmed')")


class Appointment(Base):
    """A client's booking of a service at a date and time."""
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'cancelled', 'completed')",
            name='ck_appointments_status',
        ),
        Index(
            ACTIVE_SLOT_INDEX,
            'service_id',
            'scheduled_date',
            'scheduled_time',
            unique=True,
            sqlite_where=_ACTIVE_CLAUSE,
            postgresql_where=_ACTIVE_CLAUSE,
        ),
    )

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(String(5), nullable=False)
    status = Column(String, nullable=False, default=STATUS_SCHEDULED)
    notes = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship('User', back_populates='appointments')
    service = relationship('Service', back_populates='appointments')
