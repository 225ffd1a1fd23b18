# identity/db/repositories/verification_repository.py

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from identity.db.models.verification import VerificationCodeRecord
from identity.utils.logging_config import log_operation, log_context, mask

from identity.db import logger


class VerificationRepository:
    """Repository for verification code rows"""

    @staticmethod
    @log_operation("create_verification_code")
    def create_code(
            db: Session,
            destination: str,
            code: str,
            issued_at: datetime,
            expires_at: datetime
    ) -> VerificationCodeRecord:
        """Insert a new unused code; earlier codes for the destination stay untouched"""
        with log_context(logger, destination=mask(destination)):
            record = VerificationCodeRecord(
                destination=destination,
                code=code,
                issued_at=issued_at,
                expires_at=expires_at,
                used=False
            )
            db.add(record)
            db.flush()

            logger.info("Created verification code", extra={
                'code_id': record.id,
                'expires_at': expires_at.isoformat()
            })

            return record

    @staticmethod
    @log_operation("get_latest_code")
    def get_latest(db: Session, destination: str) -> Optional[VerificationCodeRecord]:
        """Most recently issued code for a destination, used or not"""
        with log_context(logger, destination=mask(destination)):
            record = db.query(VerificationCodeRecord).filter(
                VerificationCodeRecord.destination == destination
            ).order_by(
                VerificationCodeRecord.issued_at.desc(),
                VerificationCodeRecord.id.desc()
            ).first()

            if record:
                logger.debug("Found latest verification code", extra={'code_id': record.id})
            else:
                logger.debug("No verification code for destination")

            return record

    @staticmethod
    @log_operation("mark_code_used")
    def mark_used(db: Session, code_id: int) -> bool:
        """
        Conditionally flip `used` on one row.

        Returns:
            True if this call flipped the flag, False if it was already set
        """
        with log_context(logger, code_id=code_id):
            updated = db.query(VerificationCodeRecord).filter(
                VerificationCodeRecord.id == code_id,
                VerificationCodeRecord.used.is_(False)
            ).update({VerificationCodeRecord.used: True}, synchronize_session=False)

            logger.info("Mark code used", extra={'updated': updated})

            return updated == 1
