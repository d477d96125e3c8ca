"""Tests for vote endpoints."""

from fastapi import status
from fastapi.testclient import TestClient

from iceberg_daemon.core.levels import TrustLevel
from iceberg_daemon.services.anti_abuse import AntiAbuseGuard


def _vote(client: TestClient, item_id: str, voter_id: str, vote_type: str, **kwargs):
    return client.post(
        f"/api/v1/votes/{item_id}",
        json={"voter_id": voter_id, "type": vote_type},
        **kwargs,
    )


def test_cast_upvote(client: TestClient, make_item) -> None:
    item = make_item("author")
    r = _vote(client, item.id, "voter-1", "up")
    assert r.status_code == status.HTTP_201_CREATED
    data = r.json()
    assert data["accepted"] is True
    assert data["your_vote"] == "up"
    assert data["weight"] == 1.0
    assert data["aggregate"]["up"] == 1
    assert data["level"] == 0


def test_votes_promote_item(client: TestClient, make_item) -> None:
    item = make_item("author")
    for n in range(4):
        assert _vote(client, item.id, f"voter-{n}", "up").json()["level"] == 0

    data = _vote(client, item.id, "voter-4", "up").json()
    assert data["level"] == int(TrustLevel.REGIONAL)
    assert data["level_name"] == "Regional"
    assert data["previous_level"] == 0


def test_changing_a_vote_replaces_it(client: TestClient, make_item) -> None:
    item = make_item("author")
    _vote(client, item.id, "voter-1", "up")
    data = _vote(client, item.id, "voter-1", "down").json()
    assert data["aggregate"]["up"] == 0
    assert data["aggregate"]["down"] == 1

    status_r = client.get(f"/api/v1/votes/{item.id}", params={"voter_id": "voter-1"})
    assert status_r.status_code == status.HTTP_200_OK
    assert status_r.json()["my_vote"] == "down"


def test_vote_status_without_voter(client: TestClient, make_item, add_votes) -> None:
    item = make_item("author")
    add_votes(item, "report", 2)
    r = client.get(f"/api/v1/votes/{item.id}")
    assert r.json()["aggregate"]["reports"] == 2
    assert r.json()["my_vote"] is None


def test_invalid_vote_type(client: TestClient, make_item) -> None:
    item = make_item("author")
    r = _vote(client, item.id, "voter-1", "sideways")
    assert r.status_code == status.HTTP_400_BAD_REQUEST


def test_self_vote_forbidden(client: TestClient, make_item) -> None:
    item = make_item("author")
    r = _vote(client, item.id, "author", "up")
    assert r.status_code == status.HTTP_403_FORBIDDEN


def test_vote_on_missing_item(client: TestClient) -> None:
    r = _vote(client, "missing", "voter-1", "up")
    assert r.status_code == status.HTTP_404_NOT_FOUND


def test_vote_bucket_is_enforced_per_client(client: TestClient, app, make_item) -> None:
    app.state.guard = AntiAbuseGuard(
        {"general": (60_000, 100), "votes": (60_000, 2), "reports": (60_000, 1), "items": (60_000, 1)}
    )
    item = make_item("author")

    assert _vote(client, item.id, "v1", "up").status_code == status.HTTP_201_CREATED
    assert _vote(client, item.id, "v2", "up").status_code == status.HTTP_201_CREATED

    limited = _vote(client, item.id, "v3", "up")
    assert limited.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert int(limited.headers["Retry-After"]) > 0

    # Reports draw from their own bucket; other clients have their own counters.
    assert _vote(client, item.id, "v4", "report").status_code == status.HTTP_201_CREATED
    other = _vote(client, item.id, "v5", "up", headers={"X-Forwarded-For": "203.0.113.9"})
    assert other.status_code == status.HTTP_201_CREATED


def test_general_bucket_covers_every_route(client: TestClient, app) -> None:
    app.state.guard = AntiAbuseGuard(
        {"general": (60_000, 2), "votes": (60_000, 10), "reports": (60_000, 10), "items": (60_000, 10)}
    )
    for _ in range(2):
        assert client.get("/api/v1/system/rules").status_code == status.HTTP_200_OK
    r = client.get("/api/v1/system/rules")
    assert r.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert "Retry-After" in r.headers


def test_rate_limit_headers_on_success_and_denial(client: TestClient, app, make_item) -> None:
    app.state.guard = AntiAbuseGuard(
        {"general": (60_000, 100), "votes": (60_000, 2), "reports": (60_000, 1), "items": (60_000, 1)}
    )
    item = make_item("author")

    accepted = _vote(client, item.id, "v1", "up")
    assert accepted.status_code == status.HTTP_201_CREATED
    assert accepted.headers["X-RateLimit-Limit"] == "2"
    assert accepted.headers["X-RateLimit-Remaining"] == "1"
    assert int(accepted.headers["X-RateLimit-Reset"]) > 0

    _vote(client, item.id, "v2", "up")
    limited = _vote(client, item.id, "v3", "up")
    assert limited.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert limited.headers["X-RateLimit-Limit"] == "2"
    assert limited.headers["X-RateLimit-Remaining"] == "0"
    assert abs(int(limited.headers["X-RateLimit-Reset"]) - int(accepted.headers["X-RateLimit-Reset"])) <= 1
    assert int(limited.headers["Retry-After"]) > 0


def test_rate_limit_headers_on_plain_routes(client: TestClient) -> None:
    r = client.get("/api/v1/system/rules")
    assert r.status_code == status.HTTP_200_OK
    assert {"X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"} <= set(r.headers)
