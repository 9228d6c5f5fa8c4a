"""Tests for the Trello REST client (board_client.py)"""
from unittest.mock import MagicMock

import pytest
import requests

from cardscan.board_client import BoardNotFound, BoardServiceError, TrelloClient
from cardscan.schema import BoardInfo, BoardList, Card


def response(payload, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.json.return_value = payload
    resp.text = str(payload)
    return resp


@pytest.fixture
def client():
    c = TrelloClient(api_key="key", token="tok", base_url="https://trello.example/1/")
    c.session = MagicMock()
    return c


def test_list_boards(client):
    client.session.get.return_value = response([
        {"id": "b1", "name": "Leads"},
        {"id": "b2", "name": "Archive"},
    ])

    boards = client.list_boards()

    assert boards == [BoardInfo("b1", "Leads"), BoardInfo("b2", "Archive")]
    args, kwargs = client.session.get.call_args
    assert args[0] == "https://trello.example/1/members/me/boards"
    assert kwargs["params"]["key"] == "key"
    assert kwargs["params"]["token"] == "tok"


def test_get_lists_scoped_to_board(client):
    client.session.get.return_value = response([{"id": "l1", "name": "New"}])
    assert client.get_lists("b1") == [BoardList("l1", "New", "b1")]


def test_get_cards_maps_desc(client):
    client.session.get.return_value = response([{"id": "c1", "name": "Call Jane", "desc": "0400 000 000"}])

    cards = client.get_cards(BoardList("l1", "New", "b1"))

    assert cards == [Card("c1", "Call Jane", "0400 000 000", "l1", "b1")]


def test_get_comments_reads_action_text(client):
    client.session.get.return_value = response([
        {"id": "a1", "type": "commentCard", "data": {"text": "office 03 5625 0000"}},
        {"id": "a2", "type": "commentCard", "data": {}},
    ])

    comments = client.get_comments(Card("c1", "Call Jane", "", "l1", "b1"))

    assert [(c.comment_id, c.card_id, c.text) for c in comments] == [
        ("a1", "c1", "office 03 5625 0000"),
        ("a2", "c1", ""),
    ]
    assert client.session.get.call_args[1]["params"]["filter"] == "commentCard"


def test_find_board_by_name_or_id(client):
    client.session.get.return_value = response([{"id": "b1", "name": "Leads"}])
    assert client.find_board("leads") == BoardInfo("b1", "Leads")
    assert client.find_board("b1") == BoardInfo("b1", "Leads")


def test_find_board_missing(client):
    client.session.get.return_value = response([{"id": "b1", "name": "Leads"}])
    with pytest.raises(BoardNotFound):
        client.find_board("Sales")


def test_http_404_is_not_found(client):
    client.session.get.return_value = response({"message": "not found"}, status=404)
    with pytest.raises(BoardNotFound):
        client.get_lists("nope")


def test_auth_failure_is_service_error(client):
    client.session.get.return_value = response("invalid token", status=401)
    with pytest.raises(BoardServiceError) as exc:
        client.list_boards()
    assert not isinstance(exc.value, BoardNotFound)
    assert "401" in str(exc.value)


def test_network_error_is_service_error(client):
    client.session.get.side_effect = requests.ConnectionError("dns failure")
    with pytest.raises(BoardServiceError):
        client.list_boards()
