"""
Board, contact and sync-run data model.

Hierarchy pulled from the board service:
  Board → List → Card → Comment

Contacts are extracted from card text and carry a versioned phone field set:
  v1: phone
  v2: mobile, landline, business
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple, Union


# Stored in place of an empty phone value so uniqueness checks treat it uniformly.
ABSENT = None


class PhoneCategory(Enum):
    """Typed phone fields used by the current contact schema."""
    MOBILE = "mobile"
    LANDLINE = "landline"
    BUSINESS = "business"


# Contact field sets by schema version. Append only.
PHONE_FIELDS: Dict[int, Tuple[str, ...]] = {
    1: ("phone",),
    2: tuple(c.value for c in PhoneCategory),
}
CURRENT_SCHEMA_VERSION = 2


@dataclass(frozen=True)
class BoardInfo:
    """A board as returned by the board service. Never persisted."""
    board_id: str
    name: str


@dataclass(frozen=True)
class BoardList:
    list_id: str
    name: str
    board_id: str


@dataclass(frozen=True)
class Card:
    card_id: str
    name: str
    description: str
    list_id: str
    board_id: str


@dataclass(frozen=True)
class Comment:
    comment_id: str
    card_id: str
    text: str


@dataclass(frozen=True)
class Contact:
    """
    A validated contact ready for deduplication and commit.

    `phones` maps each field of the schema version's field set to a trimmed
    number or ABSENT. `contact_id` is assigned by the store.
    """
    card_id: str
    name: str
    location: str
    phones: Dict[str, Optional[str]]
    schema_version: int = CURRENT_SCHEMA_VERSION
    contact_id: Optional[int] = None

    def phone(self, name: str) -> Optional[str]:
        return self.phones.get(name, ABSENT)

    def populated_phones(self) -> Dict[str, str]:
        return {k: v for k, v in self.phones.items() if v is not ABSENT}

    def matches(self, other: "Contact") -> bool:
        """
        Loose duplicate match: same card, name and location, and at least one
        phone category holding the same number on both sides.
        """
        if (self.card_id, self.name, self.location) != (other.card_id, other.name, other.location):
            return False
        mine = self.populated_phones()
        theirs = other.populated_phones()
        return any(theirs.get(k) == v for k, v in mine.items())


# ── Extraction results ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Structured:
    """Extraction service returned a JSON object."""
    fields: Dict[str, Any]


@dataclass(frozen=True)
class Unparsable:
    """Extraction service returned content that is not a JSON object."""
    raw: str


@dataclass(frozen=True)
class ExtractionFailed:
    """The request itself failed (network, HTTP status, malformed envelope)."""
    error: str


ExtractionResult = Union[Structured, Unparsable, ExtractionFailed]


@dataclass(frozen=True)
class Rejected:
    """A structured result that failed validation."""
    reason: str
    fields: Dict[str, Any]


# ── Sync run ─────────────────────────────────────────────────────────────────

class SyncMode(Enum):
    FULL = "full"                # board changed: truncate, then rebuild
    INCREMENTAL = "incremental"  # same board: insert-if-absent only


class SyncState(Enum):
    """Orchestrator lifecycle."""
    IDLE = "idle"
    RESOLVING = "resolving"
    TRUNCATING = "truncating"
    SYNCING = "syncing"
    ABORTED = "aborted"

    def can_transition_to(self, new_state: "SyncState") -> bool:
        allowed_next = {
            SyncState.IDLE: [SyncState.RESOLVING],
            SyncState.RESOLVING: [SyncState.TRUNCATING, SyncState.SYNCING, SyncState.ABORTED],
            SyncState.TRUNCATING: [SyncState.SYNCING, SyncState.IDLE],
            SyncState.SYNCING: [SyncState.IDLE],
            SyncState.ABORTED: [SyncState.RESOLVING],  # next run
        }
        return new_state in allowed_next.get(self, [])


class SyncStatus(Enum):
    """Outcome reported to the caller."""
    COMPLETED = "completed"
    FAILED = "failed"      # hierarchy walk broke part way; partial state kept
    ABORTED = "aborted"    # board could not be resolved; nothing touched


@dataclass
class CardFailure:
    board_id: str
    list_id: str
    card_id: str
    message: str


@dataclass
class SyncReport:
    """Counters and outcome for one synchronize() call."""
    board_ref: str
    board_id: Optional[str] = None
    board_name: Optional[str] = None
    mode: Optional[SyncMode] = None
    status: SyncStatus = SyncStatus.COMPLETED
    error: Optional[str] = None

    lists_inserted: int = 0
    cards_inserted: int = 0
    comments_inserted: int = 0
    cards_seen: int = 0
    text_units_scanned: int = 0

    contacts_committed: int = 0
    duplicates_skipped: int = 0
    records_rejected: int = 0
    parse_failures: int = 0
    extraction_failures: int = 0
    rollbacks: int = 0
    card_failures: List[CardFailure] = field(default_factory=list)

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.status == SyncStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "board_ref": self.board_ref,
            "board_id": self.board_id,
            "board_name": self.board_name,
            "mode": self.mode.value if self.mode else None,
            "status": self.status.value,
            "error": self.error,
            "lists_inserted": self.lists_inserted,
            "cards_inserted": self.cards_inserted,
            "comments_inserted": self.comments_inserted,
            "cards_seen": self.cards_seen,
            "text_units_scanned": self.text_units_scanned,
            "contacts_committed": self.contacts_committed,
            "duplicates_skipped": self.duplicates_skipped,
            "records_rejected": self.records_rejected,
            "parse_failures": self.parse_failures,
            "extraction_failures": self.extraction_failures,
            "rollbacks": self.rollbacks,
            "card_failures": [f.__dict__ for f in self.card_failures],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
