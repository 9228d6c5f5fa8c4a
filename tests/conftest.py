"""Shared fixtures: temporary store, in-memory board service, scripted extractor."""

import logging

import pytest

from cardscan.board_client import BoardNotFound, BoardServiceError
from cardscan.schema import BoardInfo, BoardList, Card, Comment, Structured
from cardscan.store import ContactStore


class FakeBoardService:
    """In-memory stand-in for TrelloClient with per-call failure switches."""

    def __init__(self):
        self.boards = {}      # board_id -> BoardInfo
        self.lists = {}       # board_id -> [BoardList]
        self.cards = {}       # list_id -> [Card]
        self.comments = {}    # card_id -> [Comment]
        self.fail_lists = set()       # board ids whose get_lists raises
        self.fail_cards = set()       # list ids whose get_cards raises
        self.fail_comments = set()    # card ids whose get_comments raises

    def add_board(self, board_id, name):
        self.boards[board_id] = BoardInfo(board_id=board_id, name=name)
        self.lists.setdefault(board_id, [])
        return self.boards[board_id]

    def add_list(self, board_id, list_id, name="To Do"):
        board_list = BoardList(list_id=list_id, name=name, board_id=board_id)
        self.lists[board_id].append(board_list)
        self.cards.setdefault(list_id, [])
        return board_list

    def add_card(self, board_list, card_id, name="", description=""):
        card = Card(card_id=card_id, name=name, description=description,
                    list_id=board_list.list_id, board_id=board_list.board_id)
        self.cards[board_list.list_id].append(card)
        self.comments.setdefault(card_id, [])
        return card

    def add_comment(self, card, comment_id, text):
        comment = Comment(comment_id=comment_id, card_id=card.card_id, text=text)
        self.comments[card.card_id].append(comment)
        return comment

    def find_board(self, ref):
        for board in self.boards.values():
            if board.board_id == ref or board.name.casefold() == ref.casefold():
                return board
        raise BoardNotFound(f"No board named or identified by {ref!r}")

    def get_lists(self, board_id):
        if board_id in self.fail_lists:
            raise BoardServiceError(f"lists for {board_id} unavailable")
        return list(self.lists.get(board_id, []))

    def get_cards(self, board_list):
        if board_list.list_id in self.fail_cards:
            raise BoardServiceError(f"cards for {board_list.list_id} unavailable")
        return list(self.cards.get(board_list.list_id, []))

    def get_comments(self, card):
        if card.card_id in self.fail_comments:
            raise BoardServiceError(f"comments for {card.card_id} unavailable")
        return list(self.comments.get(card.card_id, []))


class ScriptedExtractor:
    """Returns a canned result per text; anything unscripted yields no contact."""

    def __init__(self, replies=None):
        self.replies = dict(replies or {})
        self.calls = []

    def extract(self, text):
        self.calls.append(text)
        return self.replies.get(text, Structured(fields={"name": "", "location": ""}))


def contact_reply(name, location, mobile="", landline="", business=""):
    return Structured(fields={
        "name": name,
        "location": location,
        "mobile": mobile,
        "landline": landline,
        "business": business,
    })


@pytest.fixture
def store(tmp_path):
    return ContactStore(str(tmp_path / "test.db"))


@pytest.fixture
def boards():
    """One board, one list, two cards; card c1 has a comment."""
    service = FakeBoardService()
    service.add_board("b1", "Leads")
    todo = service.add_list("b1", "l1", "New leads")
    c1 = service.add_card(todo, "c1", name="Call Jane", description="Jane Smith, Drouin, 0400 000 000")
    service.add_card(todo, "c2", name="Follow up", description="")
    service.add_comment(c1, "m1", "Her office line is 03 5625 0000")
    return service


@pytest.fixture
def extractor():
    return ScriptedExtractor()


@pytest.fixture
def restore_logging():
    """configure_logging replaces the root handlers; put the originals back."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
