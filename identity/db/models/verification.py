# identity/db/models/verification.py

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Index
from identity.db.base import Base


class VerificationCodeRecord(Base):
    __tablename__ = "verification_codes"

    id = Column(Integer, primary_key=True, index=True)
    destination = Column(String, nullable=False)
    code = Column(String(6), nullable=False)
    issued_at = Column(DateTime, nullable=False, default=datetime.now)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        # Latest-issued lookup per destination
        Index("ix_verification_codes_destination_issued", "destination", "issued_at"),
    )
