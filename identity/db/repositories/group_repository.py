# identity/db/repositories/group_repository.py

from typing import List, Sequence, Union

from sqlalchemy.orm import Session

from identity.db.models.group_member import GroupMember
from identity.utils.logging_config import log_operation, log_context

from identity.db import logger


class GroupRepository:
    """Repository for group memberships"""

    @staticmethod
    @log_operation("add_members")
    def add_members(db: Session, group_id: Union[int, str], user_ids: Sequence[int]) -> List[GroupMember]:
        """Stage one membership row per user; the caller's transaction decides the outcome"""
        with log_context(logger, group_id=group_id, member_count=len(user_ids)):
            members = [GroupMember(group_id=str(group_id), user_id=user_id) for user_id in user_ids]
            db.add_all(members)
            db.flush()

            logger.info("Added group members")

            return members

    @staticmethod
    @log_operation("get_member_ids")
    def get_member_ids(db: Session, group_id: Union[int, str]) -> List[int]:
        rows = db.query(GroupMember.user_id).filter(
            GroupMember.group_id == str(group_id)
        ).order_by(GroupMember.user_id).all()
        return [row[0] for row in rows]
