"""Networked authoritative collection store.

Talks to the collection API served by ``plantcare.blueprints.api`` (or any
server with the same contract)::

    GET  {base_url}/api/collections/<name>  -> {"ok": true, "data": [...]}
    PUT  {base_url}/api/collections/<name>  <- JSON array

Calls are made with ``requests`` on a worker thread so the caller's event loop
is never blocked. Every call is fallible: a write counts as done only once the
server confirms it with a 2xx answer.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

import requests

from plantcare.constants import Timeouts
from plantcare.domain.exceptions import RemoteStorageError
from infrastructure.storage.local_store import validate_collection_name

logger = logging.getLogger(__name__)


class RemoteCollectionStore:
    """Asynchronous get/set against the remote collection API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = Timeouts.REMOTE_STORE_TIMEOUT,
        session: Optional[requests.Session] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required for the remote store")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._headers = {"Accept": "application/json", **(headers or {})}

    def _url(self, name: str) -> str:
        return f"{self.base_url}/api/collections/{validate_collection_name(name)}"

    async def get(self, name: str) -> List[Any]:
        return await asyncio.to_thread(self._get_sync, name)

    async def set(self, name: str, records: List[Any]) -> None:
        await asyncio.to_thread(self._set_sync, name, list(records))

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Blocking transport (runs on a worker thread)
    # ------------------------------------------------------------------

    def _get_sync(self, name: str) -> List[Any]:
        url = self._url(name)
        response = self._request("GET", url, name)
        if response.status_code == 404:
            return []
        self._raise_for_status(response, "GET", name)
        data = self._unwrap(response, name)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Remote collection %s returned %s instead of an array", name, type(data).__name__)
            raise RemoteStorageError(f"Remote collection {name} is not an array", detail={"collection": name})
        return data

    def _set_sync(self, name: str, records: List[Any]) -> None:
        url = self._url(name)
        response = self._request("PUT", url, name, json=records)
        self._raise_for_status(response, "PUT", name)
        logger.debug("Remote collection %s replaced (%d records)", name, len(records))

    def _request(self, method: str, url: str, name: str, **kwargs: Any) -> requests.Response:
        try:
            return self._session.request(method, url, headers=self._headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            logger.warning("Remote store timeout: %s %s", method, url)
            raise RemoteStorageError(
                f"Timed out talking to remote store ({method} {name})",
                detail={"collection": name, "method": method},
            ) from e
        except requests.exceptions.ConnectionError as e:
            logger.warning("Remote store connection error: %s %s", method, url)
            raise RemoteStorageError(
                f"Remote store unreachable ({method} {name})",
                detail={"collection": name, "method": method},
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error("Remote store request failed: %s %s: %s", method, url, e)
            raise RemoteStorageError(
                f"Remote store request failed ({method} {name})",
                detail={"collection": name, "method": method},
            ) from e

    @staticmethod
    def _raise_for_status(response: requests.Response, method: str, name: str) -> None:
        if 200 <= response.status_code < 300:
            return
        logger.warning("Remote store answered %d for %s %s", response.status_code, method, name)
        raise RemoteStorageError(
            f"Remote store rejected {method} {name} with HTTP {response.status_code}",
            detail={"collection": name, "method": method, "status": response.status_code},
        )

    @staticmethod
    def _unwrap(response: requests.Response, name: str) -> Any:
        """Accept a bare array or the ``{"ok": ..., "data": [...]}`` envelope."""
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteStorageError(f"Remote collection {name} returned invalid JSON", detail={"collection": name}) from e
        if isinstance(payload, dict):
            if payload.get("ok") is False:
                raise RemoteStorageError(
                    f"Remote store reported an error for {name}",
                    detail={"collection": name, "error": payload.get("error")},
                )
            return payload.get("data")
        return payload
