# identity/db/stores.py
"""SQLAlchemy-backed CodeStore and Directory."""

from datetime import datetime
from typing import AbstractSet, List, Optional, Sequence, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from identity.db.models.user import User
from identity.db.models.verification import VerificationCodeRecord
from identity.db.repositories import GroupRepository, UserRepository, VerificationRepository
from identity.db.session import db_session
from identity.errors import Conflict, DirectoryUnavailable, StoreUnavailable
from identity.interfaces import CodeStore, Directory
from identity.models import DirectoryUser, UserId, VerificationCode

from identity.db import logger


def _to_code(record: VerificationCodeRecord) -> VerificationCode:
    return VerificationCode(
        id=record.id,
        destination=record.destination,
        code=record.code,
        issued_at=record.issued_at,
        expires_at=record.expires_at,
        used=bool(record.used)
    )


def _to_user(user: User) -> DirectoryUser:
    return DirectoryUser(id=user.id, name=user.name, email=user.email, phone=user.phone)


class SqlCodeStore(CodeStore):
    logger = logger

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def insert(self, record: VerificationCode) -> VerificationCode:
        try:
            with db_session(self.session_factory) as db:
                row = VerificationRepository.create_code(
                    db, record.destination, record.code, record.issued_at, record.expires_at
                )
                stored = _to_code(row)
        except SQLAlchemyError as e:
            raise StoreUnavailable("Could not store verification code") from e
        return stored

    def find_latest_active(self, destination: str, now: datetime) -> Optional[VerificationCode]:
        try:
            with db_session(self.session_factory) as db:
                row = VerificationRepository.get_latest(db, destination)
                latest = _to_code(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreUnavailable("Could not read verification codes") from e

        if latest is None or not latest.is_active(now):
            return None
        return latest

    def mark_used(self, record_id: int) -> None:
        try:
            with db_session(self.session_factory) as db:
                flipped = VerificationRepository.mark_used(db, record_id)
        except SQLAlchemyError as e:
            raise StoreUnavailable("Could not update verification code") from e
        if not flipped:
            raise Conflict(f"Verification code {record_id} was already used")

    def last_issued_at(self, destination: str) -> Optional[datetime]:
        try:
            with db_session(self.session_factory) as db:
                row = VerificationRepository.get_latest(db, destination)
                return row.issued_at if row is not None else None
        except SQLAlchemyError as e:
            raise StoreUnavailable("Could not read verification codes") from e


class SqlDirectory(Directory):
    logger = logger

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def find_by_emails_or_phones(
            self,
            emails: AbstractSet[str],
            phones: AbstractSet[str]
    ) -> List[DirectoryUser]:
        try:
            with db_session(self.session_factory) as db:
                users = UserRepository.find_by_emails_or_phones(db, emails, phones)
                return [_to_user(user) for user in users]
        except SQLAlchemyError as e:
            raise DirectoryUnavailable("Could not query registered users") from e

    def insert_memberships(self, group_id: Union[int, str], user_ids: Sequence[UserId]) -> None:
        try:
            with db_session(self.session_factory) as db:
                GroupRepository.add_members(db, group_id, list(user_ids))
        except IntegrityError as e:
            raise Conflict("One or more contacts are already members of this group") from e
        except SQLAlchemyError as e:
            raise DirectoryUnavailable("Could not add group members") from e
