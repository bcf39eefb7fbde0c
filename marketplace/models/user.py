"""User model definitions."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from marketplace.database import Base

USER_TYPE_CLIENT = 'client'
USER_TYPE_PROVIDER = 'provider'
USER_TYPES = (USER_TYPE_CLIENT, USER_TYPE_PROVIDER)


class User(Base):
    """Represents a marketplace client or service provider."""
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("user_type IN ('client', 'provider')", name='ck_users_user_type'),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String)
    city = Column(String)
    user_type = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())

    services = relationship('Service', back_populates='provider', cascade='all, delete-orphan')
    appointments = relationship('Appointment', back_populates='client', cascade='all, delete-orphan')
