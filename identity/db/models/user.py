# identity/db/models/user.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from identity.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=True)
    # Stored digits-only so it can be compared with normalized contact phones
    phone = Column(String, unique=True, index=True, nullable=True)
    created_at = Column(DateTime, default=func.now())

    # Relationships
    memberships = relationship("GroupMember", back_populates="user", cascade="all, delete-orphan")
