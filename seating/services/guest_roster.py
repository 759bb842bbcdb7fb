"""
In-memory guest roster for one event, plus the read views built on it
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from seating.core.errors import NotFoundError
from seating.schemas.category import CategoryRecord, CategorySection
from seating.schemas.guest import GuestRecord, RsvpStatus

logger = logging.getLogger(__name__)

UNCATEGORIZED_KEY = "__uncategorized__"
UNCATEGORIZED_LABEL = "Uncategorized"
UNKNOWN_CATEGORY_LABEL = "Category"


def effective_party_size(value: Any) -> int:
    """Number of people a guest record counts for; anything unusable is 1"""
    if value is None or isinstance(value, bool):
        return 1
    try:
        size = int(value)
    except (TypeError, ValueError):
        return 1
    return size if size >= 1 else 1


def normalize_category_id(raw: Any) -> Optional[str]:
    text = str(raw if raw is not None else "").strip()
    return text.lower() if text else None


class GuestRoster:
    """Guests of one event.

    Field changes go through ``replace`` and ``remove``, which only the
    assignment engine and the event session call. Everything else here is
    a read view over a list of guests.
    """

    def __init__(self, event_id: str):
        self.event_id = event_id
        self._guests: Dict[str, GuestRecord] = {}

    def load(self, guests: Iterable[GuestRecord]) -> None:
        """Replace the held guests with a fresh snapshot"""
        self._guests = {guest.id: guest for guest in guests}
        logger.debug(f"Loaded {len(self._guests)} guests for event {self.event_id}")

    def list_guests(self, event_id: Optional[str] = None) -> List[GuestRecord]:
        if event_id is not None and event_id != self.event_id:
            raise NotFoundError("Guests for event", event_id)
        return list(self._guests.values())

    def get(self, guest_id: str) -> GuestRecord:
        guest = self._guests.get(guest_id)
        if guest is None:
            raise NotFoundError("Guest", guest_id)
        return guest

    def contains(self, guest_id: str) -> bool:
        return guest_id in self._guests

    def replace(self, guest: GuestRecord) -> None:
        self._guests[guest.id] = guest

    def remove(self, guest_id: str) -> GuestRecord:
        guest = self._guests.pop(guest_id, None)
        if guest is None:
            raise NotFoundError("Guest", guest_id)
        return guest

    def __len__(self) -> int:
        return len(self._guests)

    # -------- read views --------

    @staticmethod
    def party_size_sum(guests: Iterable[GuestRecord]) -> int:
        return sum(effective_party_size(guest.party_size) for guest in guests)

    @staticmethod
    def filter_by_table(guests: Iterable[GuestRecord], table_id: Optional[str]) -> List[GuestRecord]:
        return [guest for guest in guests if guest.table_id == table_id]

    @staticmethod
    def filter_by_status(guests: Iterable[GuestRecord], status: RsvpStatus) -> List[GuestRecord]:
        status = RsvpStatus(status)
        return [guest for guest in guests if guest.rsvp_status == status]

    @staticmethod
    def filter_by_checked_in(guests: Iterable[GuestRecord], checked_in: bool) -> List[GuestRecord]:
        return [guest for guest in guests if bool(guest.checked_in) == checked_in]

    @staticmethod
    def search(guests: Iterable[GuestRecord], query: Optional[str]) -> List[GuestRecord]:
        """Case-insensitive match against name, phone and RSVP status"""
        needle = (query or "").strip().lower()
        if not needle:
            return list(guests)
        return [
            guest for guest in guests
            if needle in f"{guest.name} {guest.phone} {guest.rsvp_status.value}".lower()
        ]

    @staticmethod
    def sections_by_category(
        guests: Iterable[GuestRecord],
        categories: Iterable[CategoryRecord],
    ) -> List[CategorySection]:
        """Group guests into check-in sections.

        Sections follow category order, then guests without a category,
        then guests whose category is not loaded (sorted by label). Empty
        sections are dropped.
        """
        categories = list(categories)
        names: Dict[str, str] = {}
        order: List[str] = []
        for category in categories:
            key = normalize_category_id(category.id)
            if not key:
                continue
            names[key] = category.name.strip() or UNCATEGORIZED_LABEL
            order.append(key)

        grouped: Dict[str, List[GuestRecord]] = {}
        for guest in guests:
            key = normalize_category_id(guest.category_id) or UNCATEGORIZED_KEY
            grouped.setdefault(key, []).append(guest)

        def label(key: str) -> str:
            if key == UNCATEGORIZED_KEY:
                return UNCATEGORIZED_LABEL
            return names.get(key, UNKNOWN_CATEGORY_LABEL)

        if UNCATEGORIZED_KEY in grouped and UNCATEGORIZED_KEY not in order:
            order.append(UNCATEGORIZED_KEY)
        known = set(order)
        extra = sorted((key for key in grouped if key not in known), key=label)

        sections = []
        for key in order + extra:
            members = grouped.get(key)
            if not members:
                continue
            sections.append(CategorySection(
                key=key,
                name=label(key),
                guests=members,
                checked_in=sum(1 for guest in members if guest.checked_in),
                total=len(members),
            ))
        return sections
