"""
Trello REST client for the board hierarchy.

Only the reads the sync needs: boards for the token's member, a board's
lists, a list's cards, and a card's comment actions.
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from .schema import BoardInfo, BoardList, Card, Comment

logger = logging.getLogger(__name__)


class BoardServiceError(Exception):
    """A board-service request failed (network, auth, unexpected payload)."""
    pass


class BoardNotFound(BoardServiceError):
    """No board matches the requested name or identifier."""
    pass


class TrelloClient:
    """HTTP client for the Trello API."""

    def __init__(self, api_key: str, token: str,
                 base_url: str = "https://api.trello.com/1", timeout: float = 30):
        self.api_key = api_key
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        query = {"key": self.api_key, "token": self.token}
        query.update(params or {})
        try:
            r = self.session.get(f"{self.base_url}{path}", params=query, timeout=self.timeout)
        except requests.RequestException as e:
            raise BoardServiceError(f"GET {path} failed: {e}") from e
        if r.status_code == 404:
            raise BoardNotFound(f"GET {path}: not found")
        if not r.ok:
            raise BoardServiceError(f"GET {path} returned HTTP {r.status_code}: {r.text[:200]}")
        try:
            return r.json()
        except ValueError as e:
            raise BoardServiceError(f"GET {path} returned non-JSON body") from e

    def list_boards(self) -> List[BoardInfo]:
        data = self._get("/members/me/boards", {"fields": "name"})
        return [BoardInfo(board_id=b["id"], name=b.get("name", "")) for b in data]

    def get_lists(self, board_id: str) -> List[BoardList]:
        data = self._get(f"/boards/{board_id}/lists", {"fields": "name"})
        return [BoardList(list_id=l["id"], name=l.get("name", ""), board_id=board_id) for l in data]

    def get_cards(self, board_list: BoardList) -> List[Card]:
        data = self._get(f"/lists/{board_list.list_id}/cards", {"fields": "name,desc"})
        return [
            Card(
                card_id=c["id"],
                name=c.get("name", ""),
                description=c.get("desc", ""),
                list_id=board_list.list_id,
                board_id=board_list.board_id,
            )
            for c in data
        ]

    def get_comments(self, card: Card) -> List[Comment]:
        data = self._get(
            f"/cards/{card.card_id}/actions",
            {"filter": "commentCard", "limit": 1000},
        )
        return [
            Comment(
                comment_id=a["id"],
                card_id=card.card_id,
                text=(a.get("data") or {}).get("text", ""),
            )
            for a in data
        ]

    def find_board(self, ref: str) -> BoardInfo:
        """
        Resolve a board by exact identifier or case-insensitive name.

        Raises BoardNotFound when nothing matches.
        """
        wanted = ref.strip()
        for board in self.list_boards():
            if board.board_id == wanted or board.name.casefold() == wanted.casefold():
                return board
        raise BoardNotFound(f"No board named or identified by {ref!r}")
