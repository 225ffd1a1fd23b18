# identity/db/models/__init__.py
# Import all models to ensure they're registered with SQLAlchemy
from identity.db.base import Base

from identity.db.models.user import User
from identity.db.models.group_member import GroupMember
from identity.db.models.verification import VerificationCodeRecord

__all__ = ['Base', 'User', 'GroupMember', 'VerificationCodeRecord']
