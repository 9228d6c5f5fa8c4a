#!/usr/bin/env python3
"""
cardscan: pull a Trello board into SQLite and extract contacts from its cards

Usage:
    cardscan                      # list boards, prompt for a number
    cardscan "Leads"              # board by name (case-insensitive)
    cardscan 5f2b9c...            # board by id
    cardscan 3                    # third board in the listing
    cardscan --list               # list boards and exit
    cardscan --config my.yaml Leads

Credentials: OPENAI_API_KEY, TRELLO_API_KEY, TRELLO_API_TOKEN (environment or .env).
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from .board_client import BoardServiceError, TrelloClient
from .config import Config, ConfigError
from .extractor import ChatCompletionsClient, ContactExtractor
from .log import configure_logging
from .marker import BoardMarker
from .schema import BoardInfo, SyncReport
from .store import ContactStore
from .sync import SyncOrchestrator

logger = logging.getLogger(__name__)


def select_board(ref: str, boards: List[BoardInfo]) -> str:
    """Map a 1-based listing number to its board id; pass names and ids through."""
    ref = ref.strip()
    if ref.isdigit():
        index = int(ref) - 1
        if 0 <= index < len(boards):
            return boards[index].board_id
    return ref


def print_boards(boards: List[BoardInfo]) -> None:
    for index, board in enumerate(boards, start=1):
        print(f"{index}. Board Name: {board.name}")


def print_report(report: SyncReport) -> None:
    print()
    print(f"Board:      {report.board_name or report.board_ref} ({report.board_id or '-'})")
    print(f"Status:     {report.status.value}" + (f": {report.error}" if report.error else ""))
    if report.mode:
        print(f"Mode:       {report.mode.value}")
    print(f"Inserted:   {report.lists_inserted} lists, {report.cards_inserted} cards, "
          f"{report.comments_inserted} comments")
    print(f"Contacts:   {report.contacts_committed} committed, {report.duplicates_skipped} duplicates, "
          f"{report.records_rejected} rejected")
    print(f"Scanned:    {report.text_units_scanned} text units, {report.parse_failures} unparsable, "
          f"{report.extraction_failures} request failures")
    if report.card_failures or report.rollbacks:
        print(f"Failures:   {len(report.card_failures)} cards, {report.rollbacks} rolled-back batches")


class ProgressPrinter:
    """Prints one line per card as the orchestrator reports progress."""

    def __init__(self):
        self.total = 0
        self.done = 0

    def list_started(self, board_list, total_cards: int) -> None:
        self.total = total_cards
        self.done = 0
        print(f"\nProcessing List: {board_list.name} ({total_cards} cards)")

    def card_processed(self, board_list, card) -> None:
        self.done += 1
        pct = (self.done * 100 // self.total) if self.total else 100
        print(f"  [{self.done}/{self.total} {pct:3d}%] {card.name[:60]}")


def build_orchestrator(cfg: Config, store: ContactStore, boards: TrelloClient,
                       marker: BoardMarker) -> SyncOrchestrator:
    client = ChatCompletionsClient(
        api_key=cfg.credentials["OPENAI_API_KEY"],
        base_url=cfg.openai_base_url,
        model=cfg.openai_model,
        max_tokens=cfg.max_tokens,
        timeout=cfg.request_timeout,
    )
    return SyncOrchestrator(
        boards=boards,
        store=store,
        extractor=ContactExtractor(client),
        marker=marker,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="cardscan",
        description="Sync a Trello board into SQLite and extract contacts from its cards.",
    )
    parser.add_argument("board", nargs="?", help="Board number, id, or name")
    parser.add_argument("--config", help="Path to cardscan.yaml")
    parser.add_argument("--list", action="store_true", help="List boards and exit")
    parser.add_argument("--json", action="store_true", help="Print the sync report as JSON")
    parser.add_argument("--quiet", action="store_true", help="No per-card progress lines")
    args = parser.parse_args(argv)

    try:
        cfg = Config.load(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # --json keeps stdout for the report alone
    sink = configure_logging(cfg.error_log_path, cfg.log_level,
                             stream=sys.stderr if args.json else sys.stdout)
    marker = BoardMarker(cfg.last_board_path)
    last_board_id = marker.read()
    try:
        boards = TrelloClient(
            api_key=cfg.credentials["TRELLO_API_KEY"],
            token=cfg.credentials["TRELLO_API_TOKEN"],
            base_url=cfg.trello_base_url,
            timeout=cfg.request_timeout,
        )

        board_ref = args.board
        if args.list or not board_ref:
            print("\nFetching boards...\n")
            try:
                listing = boards.list_boards()
            except BoardServiceError as e:
                logger.error(f"Error listing boards: {e}")
                print(f"\nFailed to fetch boards: {e}\nPlease check your API keys and try again.",
                      file=sys.stderr)
                return 1
            print_boards(listing)
            if args.list:
                return 0
            board_ref = input("Enter the number of the board you want to scrape, "
                              "or press Enter to exit: ").strip()
            if not board_ref:
                print("Exiting.")
                return 0
            board_ref = select_board(board_ref, listing)
        elif board_ref.strip().isdigit():
            try:
                board_ref = select_board(board_ref, boards.list_boards())
            except BoardServiceError as e:
                # resolved (or aborted) by the orchestrator as a plain id
                logger.error(f"Error listing boards: {e}")

        store = ContactStore(cfg.db_path)
        orchestrator = build_orchestrator(cfg, store, boards, marker)
        if not (args.quiet or args.json):
            progress = ProgressPrinter()
            orchestrator.subscribe("list_started", progress.list_started)
            orchestrator.subscribe("card_processed", progress.card_processed)

        report = orchestrator.synchronize(board_ref, last_board_id=last_board_id)
        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print_report(report)
        return 0 if report.ok else 1
    finally:
        logging.getLogger().removeHandler(sink)
        sink.close()


if __name__ == "__main__":
    sys.exit(main())
