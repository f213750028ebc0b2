"""Tests for the city directory client and its retry policy."""

from unittest.mock import MagicMock

import pytest
import requests

from src.dojo.directory import CityDirectory
from src.dojo.errors import PermanentError, TransientError

API = "https://api.example.com/app"


def _response(status_code, payload=None):
    response = MagicMock(status_code=status_code)
    response.json.return_value = payload
    return response


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(CityDirectory.list_cities.retry, "sleep", lambda seconds: None)


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def directory(session):
    return CityDirectory(API, timeout=2.0, session=session)


def test_lists_cities_sorted_by_name(directory, session):
    session.get.return_value = _response(
        200,
        [
            {"id": "c2", "nome": "Springfield"},
            {"nome": "Capital City"},
            {"id": "c9"},
        ],
    )

    cities = directory.list_cities()

    session.get.assert_called_once_with(f"{API}/cidades", timeout=2.0)
    assert [(c.id, c.name) for c in cities] == [
        ("Capital City", "Capital City"),
        ("c2", "Springfield"),
    ]


def test_retries_server_errors(directory, session):
    session.get.side_effect = [
        _response(503),
        requests.ConnectionError("reset"),
        _response(200, [{"nome": "Springfield"}]),
    ]

    assert [c.name for c in directory.list_cities()] == ["Springfield"]
    assert session.get.call_count == 3


def test_gives_up_after_three_attempts(directory, session):
    session.get.return_value = _response(502)

    with pytest.raises(TransientError):
        directory.list_cities()
    assert session.get.call_count == 3


def test_client_error_is_not_retried(directory, session):
    session.get.return_value = _response(404)

    with pytest.raises(PermanentError):
        directory.list_cities()
    assert session.get.call_count == 1


def test_unexpected_payload(directory, session):
    session.get.return_value = _response(200, {"error": "nope"})
    with pytest.raises(PermanentError):
        directory.list_cities()


def test_get_city(directory, session):
    session.get.return_value = _response(200, [{"id": "c2", "nome": "Springfield"}])

    assert directory.get_city("c2").name == "Springfield"
    assert directory.get_city("c3") is None
