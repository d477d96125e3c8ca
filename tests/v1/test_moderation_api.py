"""Tests for moderation, recalculation and metrics endpoints."""

import asyncio

from fastapi import status
from fastapi.testclient import TestClient

from iceberg_daemon.core.levels import TrustLevel
from iceberg_daemon.models import ContentItem
from iceberg_daemon.services import reconciliation


def test_manual_sweep_hides_reported_item(client: TestClient, db_session, make_item, add_votes) -> None:
    item = make_item("author", level=TrustLevel.REGIONAL)
    add_votes(item, "up", 5)
    add_votes(item, "report", 10)

    r = client.post("/api/v1/moderation/sweep")
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["items_hidden"] == 1

    db_session.expire_all()
    assert db_session.get(ContentItem, item.id).trust_level == int(TrustLevel.HIDDEN)

    history = client.get("/api/v1/moderation/snapshots")
    assert history.status_code == status.HTTP_200_OK
    assert len(history.json()) == 1


def test_restore_hidden_item(client: TestClient, make_item) -> None:
    item = make_item("author", level=TrustLevel.HIDDEN)
    r = client.post(f"/api/v1/moderation/{item.id}/restore")
    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"id": item.id, "level": 0, "level_name": "Wild"}


def test_restore_missing_item(client: TestClient) -> None:
    r = client.post("/api/v1/moderation/missing/restore")
    assert r.status_code == status.HTTP_404_NOT_FOUND


def test_recalculate_item(client: TestClient, make_item, add_votes) -> None:
    item = make_item("author")
    add_votes(item, "up", 6)

    r = client.post(f"/api/v1/consensus/{item.id}/recalculate")
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["level_name"] == "Regional"


def test_recalculate_all(client: TestClient, make_item, add_votes) -> None:
    promoted = make_item("one")
    make_item("two")
    add_votes(promoted, "up", 6)

    r = client.post("/api/v1/consensus/recalculate")
    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"processed": 2, "changed": 1}


def test_metrics_snapshot_endpoints(client: TestClient, make_item, add_votes) -> None:
    item = make_item("author")
    add_votes(item, "up", 2)

    created = client.post("/api/v1/metrics/snapshots")
    assert created.status_code == status.HTTP_201_CREATED
    assert created.json()["total_items"] == 1
    assert created.json()["total_votes_up"] == 2

    listed = client.get("/api/v1/metrics/snapshots")
    assert [row["id"] for row in listed.json()] == [created.json()["id"]]


def test_manual_sweep_runs_off_the_event_loop(client: TestClient, make_item, add_votes, mocker) -> None:
    item = make_item("author", level=TrustLevel.REGIONAL)
    add_votes(item, "up", 5)
    add_votes(item, "report", 10)
    loops_seen = []

    def sweep_in_worker(db, rules):
        try:
            loops_seen.append(asyncio.get_running_loop())
        except RuntimeError:
            loops_seen.append(None)
        return reconciliation.run_moderation_sweep(db, rules)

    mocker.patch(
        "iceberg_daemon.api.v1.endpoints.moderation.run_moderation_sweep",
        side_effect=sweep_in_worker,
    )

    r = client.post("/api/v1/moderation/sweep")

    assert r.status_code == status.HTTP_200_OK
    assert r.json()["items_hidden"] == 1
    assert loops_seen == [None]
