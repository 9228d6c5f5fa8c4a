"""Duplicate check for contact candidates before they join a card's commit batch."""
import logging
from typing import Sequence

from .schema import Contact
from .store import ContactStore

logger = logging.getLogger(__name__)


class DuplicateGate:
    """
    Rejects a candidate that matches a stored contact for the same card, or a
    candidate already accepted into the pending batch.

    A match needs equal card, name and location plus one shared phone number
    in the same category. Two candidates that differ only in a second number
    therefore count as the same contact.
    """

    def __init__(self, store: ContactStore):
        self.store = store

    def is_duplicate(self, card_id: str, candidate: Contact, pending: Sequence[Contact] = ()) -> bool:
        if candidate.card_id != card_id:
            raise ValueError(f"Candidate belongs to card {candidate.card_id}, not {card_id}")
        if any(candidate.matches(accepted) for accepted in pending):
            where = "pending batch"
        elif self.store.contact_exists(candidate):
            where = "store"
        else:
            return False
        logger.warning(
            f"Skipping duplicate record for card {card_id} (matched {where}): "
            f"name={candidate.name!r} location={candidate.location!r} "
            f"phones={candidate.populated_phones()}"
        )
        return True
