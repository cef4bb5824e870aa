"""Record store adapter that talks to the quiz server over HTTP.

Participants on other devices use this instead of the in-process store. Reads
and writes map one-to-one onto the ``/store`` endpoints; subscriptions poll
their path on a background thread and fire only when the snapshot changed.
"""

from __future__ import annotations

import itertools
import logging
from threading import Event, Lock, RLock, Thread
from typing import Any

import httpx

from quiz_live.constants.network_constants import (
    DEFAULT_SERVER_URL,
    HTTP_TIMEOUT_SECONDS,
    STORE_POLL_INTERVAL_SECONDS,
)
from quiz_live.core.errors import InvalidPathError, StoreUnavailableError
from quiz_live.core.record_store import Listener, Unsubscribe, join_path, split_path

logger = logging.getLogger(__name__)

_MISSING = object()


class _PollingSubscription:
    def __init__(self, store: HttpRecordStore, path: str, listener: Listener, interval: float) -> None:
        self.path = path
        self._store = store
        self._listener = listener
        self._interval = interval
        self._stop = Event()
        # Held across fetch and delivery so snapshots reach the listener in fetch order.
        self._lock = RLock()
        self._last: Any = _MISSING
        self._thread = Thread(target=self._run, name=f"StorePoll-{path}", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def deliver(self, snapshot: Any) -> None:
        with self._lock:
            if self._stop.is_set() or snapshot == self._last:
                return
            self._last = snapshot
            try:
                self._listener(snapshot)
            except Exception:
                logger.exception("Listener on %s failed", self.path)

    def poll(self) -> None:
        with self._lock:
            try:
                snapshot = self._store.get(self.path)
            except StoreUnavailableError as exc:
                logger.warning("Polling %s failed: %s", self.path, exc)
                return
            self.deliver(snapshot)

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self.poll()


class HttpRecordStore:
    """Same operations as the in-memory store, served by ``/store/{path}``."""

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        *,
        client: httpx.Client | None = None,
        poll_interval: float = STORE_POLL_INTERVAL_SECONDS,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._poll_interval = poll_interval
        self._lock = Lock()
        self._subscriptions: dict[int, _PollingSubscription] = {}
        self._ids = itertools.count(1)

    def get(self, path: str) -> Any:
        payload = self._request("GET", path)
        return payload.get("value") if payload else None

    def exists(self, path: str) -> bool:
        return self.get(path) is not None

    def set(self, path: str, value: Any) -> None:
        self._request("PUT", path, json={"value": value})

    def update(self, path: str, updates: dict[str, Any]) -> None:
        self._request("PATCH", path, json={"updates": updates})

    def push(self, path: str, value: Any) -> str:
        payload = self._request("POST", path, json={"value": value})
        return str(payload["key"])

    def remove(self, path: str) -> None:
        self._request("DELETE", path)

    def subscribe(self, path: str, listener: Listener) -> Unsubscribe:
        subscription = _PollingSubscription(self, path, listener, self._poll_interval)
        subscription.deliver(self.get(path))
        with self._lock:
            subscription_id = next(self._ids)
            self._subscriptions[subscription_id] = subscription
        subscription.start()

        def unsubscribe() -> None:
            subscription.stop()
            with self._lock:
                self._subscriptions.pop(subscription_id, None)

        return unsubscribe

    def refresh(self) -> None:
        """Poll every subscription now instead of waiting for the next tick."""
        with self._lock:
            subscriptions = list(self._subscriptions.values())
        for subscription in subscriptions:
            subscription.poll()

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.stop()
        if self._owns_client:
            self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = "/store/" + join_path(*split_path(path))
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            if exc.response.status_code == 422:
                raise InvalidPathError(detail) from exc
            raise StoreUnavailableError(f"{method} {url} failed: {detail}") from exc
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(f"{method} {url} failed: {exc}") from exc
        if not response.content:
            return None
        return response.json()


def _error_detail(response: httpx.Response) -> str:
    try:
        return str(response.json().get("detail", response.text))
    except (ValueError, AttributeError):
        return response.text or f"HTTP {response.status_code}"
