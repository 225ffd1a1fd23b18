# identity/interfaces.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import AbstractSet, List, Optional, Sequence, Union

from identity.models import DirectoryUser, UserId, VerificationCode


class CodeStore(ABC):
    """
    Persistence for issued verification codes.
    Implementations must make `mark_used` a compare-and-set on the used flag.
    """

    @abstractmethod
    def insert(self, record: VerificationCode) -> VerificationCode:
        """
        Store a new record. Earlier records for the same destination are kept.

        Returns:
            The stored record with its `id` assigned
        """
        pass

    @abstractmethod
    def find_latest_active(self, destination: str, now: datetime) -> Optional[VerificationCode]:
        """
        Return the most recently issued record for a destination if it is
        still unused and unexpired at `now`, otherwise None.

        Older records never surface here, even when still active themselves.
        """
        pass

    @abstractmethod
    def mark_used(self, record_id: int) -> None:
        """
        Flip `used` to true for a single record.

        Raises:
            Conflict: the record was already used (or does not exist)
        """
        pass

    @abstractmethod
    def last_issued_at(self, destination: str) -> Optional[datetime]:
        """Issuance time of the newest record for a destination, if any"""
        pass


class Directory(ABC):
    """Registered-user directory, read-only except for group memberships."""

    @abstractmethod
    def find_by_emails_or_phones(
        self,
        emails: AbstractSet[str],
        phones: AbstractSet[str]
    ) -> List[DirectoryUser]:
        """
        Users whose normalized email is in `emails` or whose normalized phone
        is in `phones`. Either set may be empty.
        """
        pass

    @abstractmethod
    def insert_memberships(self, group_id: Union[int, str], user_ids: Sequence[UserId]) -> None:
        """
        Insert one membership per user id as a single batch.

        Raises:
            Conflict: a membership already exists
            DirectoryUnavailable: the directory could not be written
        """
        pass


class CodeSender(ABC):
    """Delivers a code to its destination. Transport is up to the implementation."""

    @abstractmethod
    def send_code(self, destination: str, code: str, expires_in_minutes: int) -> bool:
        """
        Returns:
            True if sent successfully, False otherwise
        """
        pass
