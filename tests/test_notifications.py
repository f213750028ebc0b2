"""Tests for the messaging API client."""

from unittest.mock import MagicMock

import pytest
import requests

from src.dojo.notifications import NotificationDispatcher

API = "https://api.example.com/app"


@pytest.fixture
def session():
    session = MagicMock()
    session.post.return_value = MagicMock(status_code=200, text="ok")
    return session


@pytest.fixture
def dispatcher(session):
    return NotificationDispatcher(API + "/", timeout=3.0, session=session)


def test_city_broadcast_payload(dispatcher, session):
    assert dispatcher.notify_city("Springfield", "Aula Cancelada", "Feriado")

    session.post.assert_called_once_with(
        f"{API}/messaging/aviso-cidade",
        json={"cidade": "Springfield", "mensagem": {"title": "Aula Cancelada", "body": "Feriado"}},
        timeout=3.0,
    )


def test_student_message_with_link(dispatcher, session):
    assert dispatcher.notify_student("s1", "Oi", "Corpo", deep_link="https://p/x")

    _, kwargs = session.post.call_args
    assert session.post.call_args.args[0] == f"{API}/messaging/aviso"
    assert kwargs["json"] == {
        "uid": "s1",
        "mensagem": {"title": "Oi", "body": "Corpo", "link": "https://p/x"},
    }


def test_student_message_without_link(dispatcher, session):
    dispatcher.notify_student("s1", "Oi", "Corpo")
    assert "link" not in session.post.call_args.kwargs["json"]["mensagem"]


def test_http_error_is_reported_not_raised(dispatcher, session):
    session.post.return_value = MagicMock(status_code=500, text="boom")
    assert dispatcher.notify_city("Springfield", "t", "b") is False


def test_network_error_is_reported_not_raised(dispatcher, session):
    session.post.side_effect = requests.ConnectionError("down")

    assert dispatcher.notify_student("s1", "t", "b") is False
    assert session.post.call_count == 1


def test_disabled_dispatcher_sends_nothing(session):
    dispatcher = NotificationDispatcher(API, enabled=False, session=session)

    assert dispatcher.notify_city("Springfield", "t", "b") is False
    session.post.assert_not_called()


def test_from_config(config):
    dispatcher = NotificationDispatcher.from_config(config)
    assert dispatcher.enabled is False
    assert dispatcher.timeout == config.request_timeout_seconds
