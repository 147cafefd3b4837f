"""
Identity and tenant tables.

Users and restaurants are owned by the wider platform; this service only
reads them to authenticate bearer tokens, re-check passwords and scope
backup access to a restaurant's owner.
"""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from restaurant_security.database import Base
from restaurant_security.models.types import UTCDateTime, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(150), index=True)
    email = Column(String(255), unique=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    restaurants = relationship("Restaurant", back_populates="owner")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    owner = relationship("User", back_populates="restaurants")
