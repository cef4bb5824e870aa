from __future__ import annotations

import threading

import httpx
import pytest
from fastapi.testclient import TestClient

from quiz_live.core.errors import InvalidPathError, StoreUnavailableError
from quiz_live.core.models import Quiz, SessionStatus
from quiz_live.core.participant_client import ParticipantClient, ParticipantMode
from quiz_live.core.remote_store import HttpRecordStore, _PollingSubscription
from quiz_live.server.api_server import create_api_app


@pytest.fixture
def client(store) -> TestClient:
    return TestClient(create_api_app(store))


@pytest.fixture
def remote(client: TestClient):
    remote_store = HttpRecordStore(client=client, poll_interval=60)
    yield remote_store
    remote_store.close()


def test_store_endpoints_round_trip(client: TestClient, store) -> None:
    assert client.put("/store/rooms/a", json={"value": {"x": 1}}).status_code == 200
    assert client.get("/store/rooms/a").json() == {"path": "rooms/a", "value": {"x": 1}}

    client.patch("/store/rooms", json={"updates": {"a/y": 2, "b": "two"}})
    assert store.get("rooms") == {"a": {"x": 1, "y": 2}, "b": "two"}

    pushed = client.post("/store/log", json={"value": "hello"})
    assert pushed.status_code == 201
    assert store.get(f"log/{pushed.json()['key']}") == "hello"

    client.delete("/store/rooms")
    assert client.get("/store/rooms").json()["value"] is None


def test_illegal_path_is_unprocessable(client: TestClient) -> None:
    response = client.put("/store/rooms/a.b", json={"value": 1})
    assert response.status_code == 422


def test_view_of_unknown_session(client: TestClient) -> None:
    assert client.get("/sessions/ZZZZZZ/view").status_code == 404


def test_view_hides_answer_key_until_results(client, start_host, join_player, mc_question, mixed_quiz) -> None:
    host = start_host(mixed_quiz)
    join_player(host.code, "Ann")
    join_player(host.code, "Ben")

    lobby = client.get(f"/sessions/{host.code}/view").json()
    assert lobby["status"] == "lobby"
    assert lobby["playerCount"] == 2
    assert lobby["question"] is None

    host.start_quiz()
    running = client.get(f"/sessions/{host.code}/view").json()
    assert running["status"] == "question"
    assert "correctIndex" not in running["question"]
    assert running["question"]["options"] == list(mc_question.options)
    assert running["timeLimit"] == 20
    assert running["questionHtml"].startswith("<p>")

    host.skip()
    results = client.get(f"/sessions/{host.code}/view").json()
    assert results["question"]["correctIndex"] == 2
    assert results["summary"]["optionCounts"] == [0, 0, 0, 0]

    host.advance()
    board = client.get(f"/sessions/{host.code}/view").json()
    assert [row["name"] for row in board["leaderboard"]] == ["Ann", "Ben"]


def test_sorting_view_uses_shuffled_order(client, start_host, mixed_quiz) -> None:
    host = start_host(mixed_quiz)
    host.start_quiz(require_players=False)
    while host.record.current_question != 3 or host.record.status is not SessionStatus.QUESTION:
        host.advance()

    view = client.get(f"/sessions/{host.code}/view").json()

    assert "items" not in view["question"]
    assert [item["index"] for item in view["question"]["displayItems"]] == host.record.shuffled_order


def test_remote_store_operations(remote: HttpRecordStore, store) -> None:
    remote.set("rooms/a", {"x": 1})
    remote.update("rooms", {"a/y": 2})
    key = remote.push("rooms/log", "entry")

    assert remote.get("rooms/a") == {"x": 1, "y": 2}
    assert store.get(f"rooms/log/{key}") == "entry"
    assert remote.exists("rooms/a")

    remote.remove("rooms")
    assert not remote.exists("rooms/a")


def test_remote_subscription_reports_changes(remote: HttpRecordStore, store) -> None:
    seen = []
    unsubscribe = remote.subscribe("rooms", seen.append)
    remote.refresh()
    store.set("rooms/a", 1)
    remote.refresh()
    remote.refresh()
    unsubscribe()
    store.set("rooms/b", 2)
    remote.refresh()

    assert seen == [None, {"a": 1}]


def test_remote_store_rejects_bad_paths(remote: HttpRecordStore) -> None:
    with pytest.raises(InvalidPathError):
        remote.get("rooms/a#b")


def test_transport_failures_become_store_unavailable() -> None:
    def offline(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def broken(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "boom"})

    for handler in (offline, broken):
        remote = HttpRecordStore(client=httpx.Client(transport=httpx.MockTransport(handler), base_url="http://quiz"))
        with pytest.raises(StoreUnavailableError):
            remote.get("rooms")
        with pytest.raises(StoreUnavailableError):
            remote.set("rooms/a", 1)


def test_participant_over_http(remote: HttpRecordStore, start_host, clock, mc_question) -> None:
    host = start_host(Quiz(title="Remote", questions=(mc_question,)))
    ann = ParticipantClient(remote, host.code, "Ann", clock=clock)
    ann.connect()
    assert ann.join()
    assert host.record.players["Ann"].score == 0

    host.start_quiz()
    remote.refresh()
    assert ann.mode is ParticipantMode.QUESTION

    clock.advance(4)
    assert ann.submit_choice(2)

    assert host.record.status is SessionStatus.RESULTS
    assert host.record.players["Ann"].score == 900
    remote.refresh()
    assert ann.my_outcome().points == 900


def test_overlapping_polls_deliver_in_fetch_order() -> None:
    seen: list[int] = []
    fetches = iter([1, 2])
    second_poll_done = threading.Event()

    class SlowFirstFetchStore:
        def get(self, path: str) -> int:
            value = next(fetches)
            if value == 1:
                racer = threading.Thread(target=lambda: (subscription.poll(), second_poll_done.set()))
                racer.start()
                second_poll_done.wait(timeout=0.2)
                self.racer = racer
            return value

    fake = SlowFirstFetchStore()
    subscription = _PollingSubscription(fake, "rooms", seen.append, interval=60)

    subscription.poll()
    fake.racer.join(timeout=5)

    assert seen == [1, 2]
