"""Availability model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from marketplace.database import Base


class AvailabilityWindow(Base):
    """Recurring weekly interval during which a service accepts bookings.

    day_of_week: 0 (Sunday) .. 6 (Saturday)
    start_time, end_time: zero-padded wall-clock "HH:MM"
    """
    __tablename__ = "availability_windows"
    __table_args__ = (
        CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_availability_day_of_week'),
        CheckConstraint('start_time < end_time', name='ck_availability_time_range'),
    )

    id = Column(Integer, primary_key=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    service = relationship('Service', back_populates='windows')
