"""Tests for the moderation sweep and metrics snapshot jobs."""

import logging

import pytest

from iceberg_daemon.core.levels import TrustLevel
from iceberg_daemon.core.rules import merge_rules
from iceberg_daemon.models import (
    Comment,
    ContentItem,
    MetricsSnapshot,
    ModerationSnapshot,
    SavedItem,
)
from iceberg_daemon.services.consensus import swap_level
from iceberg_daemon.services.reconciliation import (
    SweepConfig,
    run_metrics_snapshot,
    run_moderation_sweep,
)

SWEEP = SweepConfig(min_votes_for_review=5, report_threshold_percent=50, batch_size=100)


def _level(db_session, item: ContentItem) -> TrustLevel:
    db_session.expire_all()
    return TrustLevel(db_session.get(ContentItem, item.id).trust_level)


def test_heavily_reported_item_is_hidden(db_session, make_item, add_votes, rules) -> None:
    item = make_item("author", level=TrustLevel.REGIONAL)
    add_votes(item, "up", 5)
    add_votes(item, "report", 10)

    snapshot = run_moderation_sweep(db_session, rules, SWEEP)

    assert _level(db_session, item) is TrustLevel.HIDDEN
    assert snapshot is not None
    assert snapshot.items_checked == 1
    assert snapshot.items_flagged == 1
    assert snapshot.items_hidden == 1
    assert db_session.query(ModerationSnapshot).count() == 1


def test_flag_below_hide_threshold_demotes_one_tier(
    db_session, make_item, add_votes, rules, caplog
) -> None:
    item = make_item("author", level=TrustLevel.SURFACE)
    add_votes(item, "up", 10)
    add_votes(item, "report", 6)

    with caplog.at_level(logging.WARNING, logger="iceberg_daemon.services.reconciliation"):
        snapshot = run_moderation_sweep(db_session, rules, SWEEP)

    assert _level(db_session, item) is TrustLevel.REGIONAL
    assert snapshot.items_flagged == 1
    assert snapshot.items_hidden == 0
    assert snapshot.items_demoted == 1
    assert any("moderation_flag" in record.getMessage() for record in caplog.records)


def test_items_below_review_minimum_are_left_alone(db_session, make_item, add_votes, rules) -> None:
    item = make_item("author", level=TrustLevel.REGIONAL)
    add_votes(item, "up", 4)
    add_votes(item, "report", 20)

    snapshot = run_moderation_sweep(db_session, rules, SWEEP)

    assert _level(db_session, item) is TrustLevel.REGIONAL
    assert snapshot.items_checked == 1
    assert snapshot.items_flagged == 0


def test_sweep_never_promotes(db_session, make_item, add_votes, rules) -> None:
    item = make_item("author")
    add_votes(item, "up", 30)

    snapshot = run_moderation_sweep(db_session, rules, SWEEP)

    assert _level(db_session, item) is TrustLevel.WILD
    assert snapshot.items_demoted == 0


def test_score_floor_demotion_is_counted(db_session, make_item, add_votes, rules) -> None:
    item = make_item("author", level=TrustLevel.REGIONAL)
    add_votes(item, "up", 1)
    add_votes(item, "down", 5)

    snapshot = run_moderation_sweep(db_session, rules, SWEEP)

    assert _level(db_session, item) is TrustLevel.WILD
    assert snapshot.items_demoted == 1


def test_hidden_items_are_not_rechecked(db_session, make_item, add_votes, rules) -> None:
    hidden = make_item("author", level=TrustLevel.HIDDEN)
    add_votes(hidden, "report", 50)
    make_item("other")

    snapshot = run_moderation_sweep(db_session, rules, SWEEP)

    assert snapshot.items_checked == 1
    assert _level(db_session, hidden) is TrustLevel.HIDDEN


def test_auto_hide_threshold_comes_from_rules(db_session, make_item, add_votes) -> None:
    strict = merge_rules({"spam": {"auto_hide_threshold": 3}})
    item = make_item("author")
    add_votes(item, "up", 5)
    add_votes(item, "report", 3)

    run_moderation_sweep(db_session, strict, SWEEP)

    assert _level(db_session, item) is TrustLevel.HIDDEN


def test_weighted_reports_do_not_reach_auto_hide(db_session, make_item, add_votes, rules) -> None:
    item = make_item("author")
    add_votes(item, "up", 5)
    # Two high-reputation reporters: weighted sum 10, but only two reports.
    add_votes(item, "report", 2, weight=5.0)

    snapshot = run_moderation_sweep(db_session, rules, SWEEP)

    assert snapshot.items_flagged == 1
    assert snapshot.items_hidden == 0
    assert _level(db_session, item) is TrustLevel.WILD


def test_sweep_reads_level_committed_after_batch_load(
    db_session, session_factory, make_item, add_votes, rules
) -> None:
    item = make_item("author", level=TrustLevel.SURFACE)
    add_votes(item, "up", 10)
    add_votes(item, "report", 6)
    promoted = []

    def promote_elsewhere() -> bool:
        # A vote in another session lifts the item once the batch is loaded.
        if not promoted:
            with session_factory() as other:
                other.get(ContentItem, item.id).trust_level = int(TrustLevel.LEGACY)
                other.commit()
            promoted.append(True)
        return False

    snapshot = run_moderation_sweep(db_session, rules, SWEEP, should_stop=promote_elsewhere)

    # One tier down from the fresh level, not two from the stale one.
    assert _level(db_session, item) is TrustLevel.SURFACE
    assert snapshot.items_demoted == 1


def test_swap_level_refuses_stale_expectation(db_session, session_factory, make_item) -> None:
    item = make_item("author", level=TrustLevel.SURFACE)
    with session_factory() as other:
        other.get(ContentItem, item.id).trust_level = int(TrustLevel.LEGACY)
        other.commit()

    changed = swap_level(
        db_session, item, TrustLevel.SURFACE, TrustLevel.REGIONAL, reason="sweep"
    )
    db_session.commit()

    assert not changed
    assert item.trust_level == int(TrustLevel.LEGACY)
    assert _level(db_session, item) is TrustLevel.LEGACY


def test_sweep_walks_every_batch(db_session, make_item, add_votes, rules) -> None:
    items = [make_item(f"author-{n}", level=TrustLevel.REGIONAL) for n in range(7)]
    for item in items:
        add_votes(item, "up", 5)
        add_votes(item, "report", 10)

    snapshot = run_moderation_sweep(
        db_session,
        rules,
        SweepConfig(min_votes_for_review=5, report_threshold_percent=50, batch_size=3),
    )

    assert snapshot.items_checked == 7
    assert snapshot.items_hidden == 7
    assert all(_level(db_session, item) is TrustLevel.HIDDEN for item in items)


def test_cancelled_sweep_keeps_progress_without_snapshot(
    db_session, make_item, add_votes, rules
) -> None:
    items = [make_item(f"author-{n}", level=TrustLevel.REGIONAL) for n in range(4)]
    for item in items:
        add_votes(item, "up", 5)
        add_votes(item, "report", 10)

    polls = []

    def should_stop() -> bool:
        polls.append(1)
        return len(polls) > 2

    result = run_moderation_sweep(db_session, rules, SWEEP, should_stop=should_stop)

    assert result is None
    assert db_session.query(ModerationSnapshot).count() == 0
    hidden = [item for item in items if _level(db_session, item) is TrustLevel.HIDDEN]
    assert len(hidden) == 2


def test_empty_store_still_records_a_snapshot(db_session, rules) -> None:
    snapshot = run_moderation_sweep(db_session, rules, SWEEP)

    assert snapshot.items_checked == 0
    assert snapshot.id is not None


def test_metrics_snapshot_totals(db_session, make_item, add_votes) -> None:
    first = make_item("one")
    second = make_item("two", level=TrustLevel.HIDDEN)
    add_votes(first, "up", 3)
    add_votes(first, "down", 1)
    add_votes(second, "report", 2, weight=1.5)
    db_session.add_all(
        [
            Comment(item_id=first.id, author_id="two", body="nice"),
            Comment(item_id=first.id, author_id="three", body="agreed"),
            SavedItem(identity_id="three", item_id=first.id),
        ]
    )
    db_session.commit()

    snapshot = run_metrics_snapshot(db_session)

    assert snapshot.total_items == 2
    assert snapshot.hidden_items == 1
    assert snapshot.total_votes_up == 3
    assert snapshot.total_votes_down == 1
    assert snapshot.total_reports == pytest.approx(3.0)
    assert snapshot.total_comments == 2
    assert snapshot.total_saved_items == 1
    assert db_session.query(MetricsSnapshot).count() == 1
