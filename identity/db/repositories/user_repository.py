# identity/db/repositories/user_repository.py

from typing import Any, Collection, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from identity.db.models.user import User
from identity.utils.logging_config import log_operation, log_context, mask
from identity.utils.normalization import normalize_email, normalize_phone

from identity.db import logger


class UserRepository:
    """Repository for registered users"""

    @staticmethod
    @log_operation("get_by_email")
    def get_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email"""
        with log_context(logger, email=mask(email)):
            user = db.query(User).filter(User.email == normalize_email(email)).first()

            if user:
                logger.debug("Found user by email", extra={'user_id': user.id})
            else:
                logger.debug("User not found by email")

            return user

    @staticmethod
    @log_operation("find_by_emails_or_phones")
    def find_by_emails_or_phones(
            db: Session,
            emails: Collection[str],
            phones: Collection[str]
    ) -> List[User]:
        """Users matching any of the normalized emails or phones, in one query"""
        with log_context(logger, email_count=len(emails), phone_count=len(phones)):
            conditions = []
            if emails:
                conditions.append(User.email.in_(list(emails)))
            if phones:
                conditions.append(User.phone.in_(list(phones)))
            if not conditions:
                return []

            users = db.query(User).filter(or_(*conditions)).order_by(User.id).all()

            logger.debug("Matched users by email or phone", extra={'user_count': len(users)})

            return users

    @staticmethod
    @log_operation("create_user")
    def create_user(db: Session, user_data: Dict[str, Any]) -> User:
        """Create a user, storing email lower-cased and phone digits-only"""
        data = dict(user_data)
        if data.get("email"):
            data["email"] = normalize_email(data["email"])
        if data.get("phone"):
            data["phone"] = normalize_phone(data["phone"])

        with log_context(logger, email=mask(data.get("email"))):
            user = User(**data)
            db.add(user)
            db.flush()

            logger.info("Created user", extra={'user_id': user.id})

            return user
