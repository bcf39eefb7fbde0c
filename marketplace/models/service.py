"""Service and category model definitions."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import relationship

from marketplace.database import Base

PRICE_TYPES = ('fixed', 'hourly', 'quote')


class ServiceCategory(Base):
    """Groups services for browsing and search."""
    __tablename__ = "service_categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String)
    created_at = Column(DateTime, server_default=func.now())


class Service(Base):
    """A bookable offering owned by one provider."""
    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint("price_type IN ('fixed', 'hourly', 'quote')", name='ck_services_price_type'),
    )

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("service_categories.id"), index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    price_type = Column(String, nullable=False)
    city = Column(String, nullable=False, index=True)
    duration_minutes = Column(Integer)
    rating = Column(Float, default=0.0)
    rating_count = Column(Integer, default=0)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    provider = relationship('User', back_populates='services')
    category = relationship('ServiceCategory')
    windows = relationship('AvailabilityWindow', back_populates='service', cascade='all, delete-orphan')
    appointments = relationship('Appointment', back_populates='service', cascade='all, delete-orphan')
