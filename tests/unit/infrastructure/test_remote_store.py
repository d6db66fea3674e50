"""Remote collection store against a mocked requests session."""

import asyncio
from unittest.mock import Mock

import pytest
import requests

from plantcare.domain.exceptions import RemoteStorageError
from infrastructure.storage.remote_store import RemoteCollectionStore


def _response(status_code=200, payload=None, json_error=False):
    response = Mock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("no JSON")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture()
def session():
    return Mock(spec=requests.Session)


@pytest.fixture()
def store(session):
    return RemoteCollectionStore("https://plants.example/", session=session, timeout=3, headers={"Authorization": "Bearer t"})


def test_get_unwraps_envelope(store, session):
    session.request.return_value = _response(payload={"ok": True, "data": [{"id": "a"}], "error": None})
    assert asyncio.run(store.get("plants")) == [{"id": "a"}]

    method, url = session.request.call_args.args
    assert (method, url) == ("GET", "https://plants.example/api/collections/plants")
    kwargs = session.request.call_args.kwargs
    assert kwargs["timeout"] == 3
    assert kwargs["headers"]["Authorization"] == "Bearer t"


def test_get_accepts_bare_array(store, session):
    session.request.return_value = _response(payload=[{"id": "a"}])
    assert asyncio.run(store.get("plants")) == [{"id": "a"}]


@pytest.mark.parametrize("response", [_response(404), _response(payload={"ok": True, "data": None})])
def test_missing_collection_is_empty(store, session, response):
    session.request.return_value = response
    assert asyncio.run(store.get("careEvents")) == []


def test_set_puts_array(store, session):
    session.request.return_value = _response(204)
    asyncio.run(store.set("plants", ({"id": "a"},)))
    args, kwargs = session.request.call_args
    assert args[0] == "PUT"
    assert kwargs["json"] == [{"id": "a"}]


@pytest.mark.parametrize("status", [400, 401, 500, 503])
def test_non_2xx_is_remote_error(store, session, status):
    session.request.return_value = _response(status)
    with pytest.raises(RemoteStorageError) as exc_info:
        asyncio.run(store.set("plants", []))
    assert exc_info.value.detail["status"] == status


@pytest.mark.parametrize(
    "error",
    [
        requests.exceptions.Timeout("slow"),
        requests.exceptions.ConnectionError("down"),
        requests.exceptions.InvalidURL("bad"),
    ],
)
def test_transport_failures_are_remote_errors(store, session, error):
    session.request.side_effect = error
    with pytest.raises(RemoteStorageError) as exc_info:
        asyncio.run(store.get("plants"))
    assert exc_info.value.__cause__ is error


@pytest.mark.parametrize(
    "response",
    [
        _response(json_error=True),
        _response(payload={"ok": True, "data": {"id": "a"}}),
        _response(payload={"ok": False, "data": None, "error": {"message": "boom"}}),
    ],
)
def test_bad_payloads_are_remote_errors(store, session, response):
    session.request.return_value = response
    with pytest.raises(RemoteStorageError):
        asyncio.run(store.get("plants"))


def test_requires_base_url():
    with pytest.raises(ValueError):
        RemoteCollectionStore("")


def test_close_closes_session(store, session):
    store.close()
    session.close.assert_called_once()
