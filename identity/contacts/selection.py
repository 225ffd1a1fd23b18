# identity/contacts/selection.py
from typing import Dict, List, Sequence, Tuple, TypeVar

from identity.contacts.reconciler import ensure_selectable
from identity.models import ContactIdentity, MatchResult

T = TypeVar('T', ContactIdentity, MatchResult)


def sort_contacts(items: Sequence[T]) -> List[T]:
    """Alphabetical by label, ignoring case; stable for equal labels"""
    return sorted(items, key=lambda item: item.label.casefold())


class ContactSelection:
    """Contacts picked for a group invite, in the order they were picked."""

    def __init__(self):
        self._selected: Dict[str, MatchResult] = {}

    def toggle(self, match: MatchResult) -> bool:
        """
        Select the contact, or deselect it if already selected.

        Returns:
            True if the contact is selected afterwards

        Raises:
            PartialSelectionInvalid: the contact is not a registered user
        """
        contact_id = match.contact.id
        if contact_id in self._selected:
            del self._selected[contact_id]
            return False
        ensure_selectable(match)
        self._selected[contact_id] = match
        return True

    def is_selected(self, match: MatchResult) -> bool:
        return match.contact.id in self._selected

    def clear(self) -> None:
        self._selected.clear()

    @property
    def selected(self) -> Tuple[MatchResult, ...]:
        return tuple(self._selected.values())

    def names(self) -> List[str]:
        return [match.matched_user_name or match.label for match in self._selected.values()]

    def __len__(self) -> int:
        return len(self._selected)
