# identity/contacts/reconciler.py
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, TypeVar, Union

from identity.errors import (
    DirectoryUnavailable, IdentityError, InvalidInput, PartialSelectionInvalid
)
from identity.interfaces import Directory
from identity.models import ContactIdentity, DirectoryUser, InviteResult, MatchResult, UserId
from identity.utils.logging_config import LogAggregator, log_context, log_operation

# Import the contacts logger
from . import logger

MATCHED_BY_EMAIL = "email"
MATCHED_BY_PHONE = "phone"

T = TypeVar('T', ContactIdentity, MatchResult)


def filter_contacts(items: Sequence[T], query: Optional[str]) -> List[T]:
    """
    Case-insensitive substring search on display names.

    An empty or blank query returns every item in its original order.
    """
    if not query or not query.strip():
        return list(items)
    needle = query.strip().lower()
    return [item for item in items if needle in (item.display_name or "").lower()]


def selectable(match: MatchResult) -> bool:
    """Only registered contacts can be invited to a group"""
    return match.is_registered


def ensure_selectable(match: MatchResult) -> MatchResult:
    if not selectable(match):
        raise PartialSelectionInvalid(
            f"{match.label} is not registered yet",
            contact_ids=[match.contact.id]
        )
    return match


def _pick(candidates: Dict[UserId, DirectoryUser]) -> Optional[DirectoryUser]:
    if not candidates:
        return None
    return candidates[min(candidates)]


class ContactReconciler:
    """
    Matches address-book contacts against registered users.

    One batched directory lookup per reconcile call, whatever the number of
    contacts. When a contact matches several users, an email match beats a
    phone match and the lowest user id wins within the same kind.
    """

    logger = logger

    def __init__(self, directory: Directory):
        self.directory = directory

    @staticmethod
    def normalize(contact: ContactIdentity) -> ContactIdentity:
        """
        Return the contact with cleaned emails and digits-only phones.

        Contacts without any usable identity come back with empty tuples and
        `is_matchable` false.
        """
        return ContactIdentity(
            id=contact.id,
            display_name=contact.display_name,
            phone_numbers=contact.normalized_phones,
            emails=contact.normalized_emails,
        )

    def _lookup(self, emails: Set[str], phones: Set[str]) -> List[DirectoryUser]:
        try:
            users = self.directory.find_by_emails_or_phones(emails, phones)
        except IdentityError:
            raise
        except Exception as e:
            self.logger.error("Directory lookup failed", exc_info=True, extra={
                'error_type': type(e).__name__,
                'email_count': len(emails),
                'phone_count': len(phones)
            })
            raise DirectoryUnavailable("User directory unavailable during reconciliation") from e

        unique: Dict[UserId, DirectoryUser] = {}
        for user in users:
            unique.setdefault(user.id, user)
        return list(unique.values())

    @staticmethod
    def _index(users: Iterable[DirectoryUser]) -> Tuple[Dict[str, Dict[UserId, DirectoryUser]], Dict[str, Dict[UserId, DirectoryUser]]]:
        by_email: Dict[str, Dict[UserId, DirectoryUser]] = {}
        by_phone: Dict[str, Dict[UserId, DirectoryUser]] = {}
        for user in users:
            if user.normalized_email:
                by_email.setdefault(user.normalized_email, {})[user.id] = user
            if user.normalized_phone:
                by_phone.setdefault(user.normalized_phone, {})[user.id] = user
        return by_email, by_phone

    @log_operation("reconcile_contacts")
    def reconcile(self, contacts: Sequence[ContactIdentity]) -> List[MatchResult]:
        """
        Annotate every contact with its registered user, if any.

        Returns:
            One MatchResult per contact, in input order

        Raises:
            DirectoryUnavailable: the directory lookup failed
        """
        normalized = [self.normalize(contact) for contact in contacts]

        emails: Set[str] = set()
        phones: Set[str] = set()
        for contact in normalized:
            emails.update(contact.emails)
            phones.update(contact.phone_numbers)

        aggregator = LogAggregator(self.logger, "Contact reconciliation")
        with log_context(self.logger, contact_count=len(contacts)):
            users = self._lookup(emails, phones) if (emails or phones) else []
            by_email, by_phone = self._index(users)

            results = []
            for original, contact in zip(contacts, normalized):
                result = MatchResult.unregistered(original)
                if not contact.is_matchable:
                    aggregator.increment('ineligible')
                    results.append(result)
                    continue

                email_hits: Dict[UserId, DirectoryUser] = {}
                for email in contact.emails:
                    email_hits.update(by_email.get(email, {}))
                phone_hits: Dict[UserId, DirectoryUser] = {}
                for phone in contact.phone_numbers:
                    phone_hits.update(by_phone.get(phone, {}))

                user = _pick(email_hits)
                matched_by = MATCHED_BY_EMAIL
                if user is None:
                    user = _pick(phone_hits)
                    matched_by = MATCHED_BY_PHONE

                if user is not None:
                    ambiguous = len(set(email_hits) | set(phone_hits)) > 1
                    result = result.with_match(user, matched_by, ambiguous)
                    if ambiguous:
                        aggregator.increment('ambiguous')
                aggregator.increment('registered' if result.is_registered else 'unregistered')
                results.append(result)

            aggregator.increment('directory_users', len(users))
            aggregator.log_summary()
            return results

    @log_operation("materialize_group_invites")
    def materialize_group_invites(
            self,
            group_id: Union[int, str],
            selected: Sequence[MatchResult]
    ) -> InviteResult:
        """
        Add the selected registered contacts to a group in one batch.

        Several contacts resolving to the same user produce one membership.

        Raises:
            InvalidInput: no group or an empty selection
            PartialSelectionInvalid: an unregistered contact is in the selection
            Conflict: the directory rejected a duplicate membership
            DirectoryUnavailable: the batch could not be written
        """
        if group_id is None or str(group_id).strip() == "":
            raise InvalidInput("A group is required to invite contacts")
        if not selected:
            raise InvalidInput("Select at least one contact")

        unregistered = [match.contact.id for match in selected if not selectable(match)]
        if unregistered:
            raise PartialSelectionInvalid(
                "Only registered contacts can be invited",
                contact_ids=unregistered
            )

        user_ids: List[UserId] = []
        for match in selected:
            if match.matched_user_id not in user_ids:
                user_ids.append(match.matched_user_id)

        with log_context(self.logger, group_id=group_id, member_count=len(user_ids)):
            try:
                self.directory.insert_memberships(group_id, user_ids)
            except IdentityError:
                self.logger.warning("Group invite batch rejected")
                raise
            except Exception as e:
                self.logger.error("Group invite batch failed", exc_info=True, extra={
                    'error_type': type(e).__name__
                })
                raise DirectoryUnavailable("User directory unavailable while adding members") from e

            self.logger.info("Added contacts to group")
            return InviteResult(group_id=group_id, user_ids=tuple(user_ids))
