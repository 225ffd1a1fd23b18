# identity/db/repositories/__init__.py
# Repositories share the db package logger
from identity.db import logger

from identity.db.repositories.verification_repository import VerificationRepository
from identity.db.repositories.user_repository import UserRepository
from identity.db.repositories.group_repository import GroupRepository

__all__ = [
    'logger',
    'VerificationRepository',
    'UserRepository',
    'GroupRepository'
]
