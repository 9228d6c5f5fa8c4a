"""
Board synchronization and contact extraction.

One synchronize() call:
  1. resolve the board reference           (failure → ABORTED, nothing touched)
  2. compare with the last synchronized board
       different → truncate all tables, record the new board   (full resync)
       same      → keep existing rows                          (incremental)
  3. walk lists → cards → comments, inserting rows that are absent
  4. per card: extract contacts from name, description and comments,
     validate, drop duplicates, commit the survivors as one transaction

Failures inside a card are logged and the walk moves on. A failure fetching
lists or cards ends the run with FAILED; rows already written stay, and a
rerun fills the gaps because every structural insert is insert-if-absent.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .board_client import BoardNotFound
from .dedup import DuplicateGate
from .schema import (
    BoardInfo,
    Card,
    CardFailure,
    Contact,
    CURRENT_SCHEMA_VERSION,
    ExtractionFailed,
    Rejected,
    Structured,
    SyncMode,
    SyncReport,
    SyncState,
    SyncStatus,
    Unparsable,
)
from .store import ContactStore, StoreError
from .validator import validate_contact

logger = logging.getLogger(__name__)


def decide_mode(last_board_id: Optional[str], board_id: str) -> SyncMode:
    """Full resync unless the requested board is the one synchronized last."""
    if last_board_id is not None and last_board_id == board_id:
        return SyncMode.INCREMENTAL
    return SyncMode.FULL


class SyncOrchestrator:
    """
    Drives one board through the store and the extractor.

    `boards` must provide find_board, get_lists, get_cards and get_comments
    (see TrelloClient). `extractor` must provide extract(text).
    `marker`, when given, is overwritten with the board id on a full resync.
    """

    def __init__(self, boards, store: ContactStore, extractor, marker=None,
                 schema_version: int = CURRENT_SCHEMA_VERSION):
        self.boards = boards
        self.store = store
        self.extractor = extractor
        self.marker = marker
        self.schema_version = schema_version
        self.gate = DuplicateGate(store)
        self.state = SyncState.IDLE
        self.subscribers: Dict[str, list] = {}  # event_type -> list of callbacks

    # ── Progress events ──────────────────────────────────────────────────────

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for list_started, card_processed or sync_finished."""
        self.subscribers.setdefault(event_type, []).append(callback)

    def _emit(self, event_type: str, **kwargs) -> None:
        for callback in self.subscribers.get(event_type, []):
            try:
                callback(**kwargs)
            except Exception as e:
                logger.warning(f"Error in {event_type} callback: {e}")

    def _transition(self, new_state: SyncState) -> None:
        if not self.state.can_transition_to(new_state):
            raise RuntimeError(f"Invalid sync transition {self.state.value} -> {new_state.value}")
        self.state = new_state

    # ── Entry point ──────────────────────────────────────────────────────────

    def synchronize(self, board_ref: str, last_board_id: Optional[str] = None) -> SyncReport:
        """
        Synchronize the board named or identified by `board_ref`.

        `last_board_id` is the marker value loaded at process start.
        """
        report = SyncReport(board_ref=board_ref)
        self._transition(SyncState.RESOLVING)

        try:
            board = self.boards.find_board(board_ref)
            if board is None:
                raise BoardNotFound(f"No board named or identified by {board_ref!r}")
            board_id, board_name = board.board_id, board.name
        except Exception as e:
            logger.error(f"Error finding board {board_ref!r}: {e}")
            report.status = SyncStatus.ABORTED
            report.error = str(e)
            self._transition(SyncState.ABORTED)
            return self._finish(report)
        except BaseException:
            # interrupted mid-lookup; the next call starts from ABORTED
            self._transition(SyncState.ABORTED)
            raise

        report.board_id = board_id
        report.board_name = board_name
        report.mode = decide_mode(last_board_id, board_id)

        try:
            if report.mode == SyncMode.FULL:
                self._transition(SyncState.TRUNCATING)
                logger.info(f"New board selected: {board.name}. Truncating database.")
                self.store.truncate()
                if self.marker is not None:
                    self.marker.write(board.board_id)
            else:
                logger.info(f"Using last stored board: {board.name}")
            self._transition(SyncState.SYNCING)
            self._walk_board(board, report)
        except Exception as e:
            logger.error(f"Error scraping board {board.name} ({board.board_id}): {e}")
            report.status = SyncStatus.FAILED
            report.error = str(e)
        finally:
            self._transition(SyncState.IDLE)
        return self._finish(report)

    def _finish(self, report: SyncReport) -> SyncReport:
        report.finished_at = datetime.now(timezone.utc)
        self._emit("sync_finished", report=report)
        return report

    # ── Hierarchy walk ───────────────────────────────────────────────────────

    def _walk_board(self, board: BoardInfo, report: SyncReport) -> None:
        for board_list in self.boards.get_lists(board.board_id):
            if self.store.insert_list(board_list):
                report.lists_inserted += 1
            cards = self.boards.get_cards(board_list)
            self._emit("list_started", board_list=board_list, total_cards=len(cards))

            for card in cards:
                report.cards_seen += 1
                try:
                    self._sync_card(card, report)
                except Exception as e:
                    logger.error(
                        f"Failed to process card: {board.board_id} -> "
                        f"{board_list.list_id} -> {card.card_id}: {e}"
                    )
                    report.card_failures.append(CardFailure(
                        board_id=board.board_id,
                        list_id=board_list.list_id,
                        card_id=card.card_id,
                        message=str(e),
                    ))
                self._emit("card_processed", board_list=board_list, card=card)

        logger.info(f"Scraping complete for board: {board.name}")

    def _sync_card(self, card: Card, report: SyncReport) -> None:
        if self.store.insert_card(card):
            report.cards_inserted += 1
        for comment in self.boards.get_comments(card):
            if self.store.insert_comment(comment):
                report.comments_inserted += 1
        self._scan_card(card, report)

    # ── Extraction ───────────────────────────────────────────────────────────

    def _text_units(self, card: Card) -> List[str]:
        texts = [card.name, card.description] + self.store.comments_for_card(card.card_id)
        return [t for t in texts if t and t.strip()]

    def _scan_card(self, card: Card, report: SyncReport) -> None:
        accepted: List[Contact] = []

        for text in self._text_units(card):
            report.text_units_scanned += 1
            result = self.extractor.extract(text)

            if isinstance(result, ExtractionFailed):
                report.extraction_failures += 1
                logger.warning(
                    f"Extraction request failed for card {card.card_id}. "
                    f"Text: {text[:80]!r}. Error: {result.error}"
                )
                continue
            if isinstance(result, Unparsable):
                report.parse_failures += 1
                logger.warning(f"Failed to parse JSON for card {card.card_id}. Content: {result.raw!r}")
                continue
            if not isinstance(result, Structured):
                raise TypeError(f"Unexpected extraction result {result!r}")

            outcome = validate_contact(result.fields, card.card_id, self.schema_version)
            if isinstance(outcome, Rejected):
                report.records_rejected += 1
                logger.warning(
                    f"Skipping invalid or incomplete record for card {card.card_id} "
                    f"({outcome.reason}). Extracted data: {outcome.fields}"
                )
                continue

            if self.gate.is_duplicate(card.card_id, outcome, accepted):
                report.duplicates_skipped += 1
                continue
            accepted.append(outcome)

        if not accepted:
            return
        try:
            report.contacts_committed += self.store.commit_contacts(card.card_id, accepted)
        except StoreError as e:
            report.rollbacks += 1
            logger.error(f"Database insertion failed for card {card.card_id}: {e}")
