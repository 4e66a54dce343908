"""Unit tests for the snapshot policy.

This module tests item identity, new-item detection, the anomaly guards
and the cold-start rule.
"""
import pytest

from wishwatch.providers.models import items_match
from wishwatch.services.snapshot_policy import (
    evaluate_snapshot,
    find_new_items,
    check_anomaly,
    SKIP,
    SYNC,
    NOTIFY,
    UNCHANGED
)
from tests.conftest import make_item, make_items


# ============================================================================
# Tests for items_match
# ============================================================================

@pytest.mark.unit
class TestItemsMatch:
    """Test OR-based item identity."""

    def test_same_product_id(self):
        """✅ Equal product ids match."""
        assert items_match(make_item("p1", "e1"), make_item("p1", "e2"))

    def test_same_external_id(self):
        """✅ Equal external ids match even if product ids differ."""
        assert items_match(make_item("p1", "e1"), make_item("p2", "e1"))

    def test_no_common_key(self):
        """❌ Different keys do not match."""
        assert not items_match(make_item("p1", "e1"), make_item("p2", "e2"))

    def test_missing_keys_never_match(self):
        """❌ Two items without keys are different items."""
        assert not items_match(make_item(), make_item())

    def test_missing_external_id_only(self):
        """✅ Absent external ids are ignored, product id decides."""
        assert items_match(make_item("p1"), make_item("p1"))
        assert not items_match(make_item("p1"), make_item("p2"))


# ============================================================================
# Tests for find_new_items
# ============================================================================

@pytest.mark.unit
class TestFindNewItems:
    """Test new item detection."""

    def test_returns_unmatched_in_fetched_order(self):
        """✅ Only unknown items, in catalog order."""
        stored = [make_item("a"), make_item("b")]
        fetched = [make_item("c"), make_item("a"), make_item("d")]

        new_items = find_new_items(stored, fetched)

        assert [i.product_id for i in new_items] == ["c", "d"]

    def test_external_id_reuse_is_not_new(self):
        """✅ Reassigned product id with same external id is known."""
        stored = [make_item("old", "ext-1")]
        fetched = [make_item("new", "ext-1")]

        assert find_new_items(stored, fetched) == []

    def test_empty_stored(self):
        """✅ Everything is new when nothing is stored."""
        fetched = make_items(3)
        assert find_new_items([], fetched) == fetched

    def test_repeated_diff_is_stable(self):
        """✅ Same stored state and fetched list give the same result twice."""
        stored = [make_item("a"), make_item("old", "ext-1")]
        fetched = [make_item("c"), make_item("new", "ext-1"), make_item("a"), make_item("d")]

        first = find_new_items(stored, fetched)
        second = find_new_items(stored, fetched)

        assert first == second
        assert [i.product_id for i in first] == ["c", "d"]


# ============================================================================
# Tests for check_anomaly
# ============================================================================

@pytest.mark.unit
class TestCheckAnomaly:
    """Test anomaly guards in isolation."""

    def test_guards_inactive_at_ten_stored(self):
        """✅ Ten stored items are not enough to trust the guards."""
        assert check_anomaly(10, 0) is None
        assert check_anomaly(10, 1) is None

    def test_empty_result(self):
        """❌ Empty fetch with more than ten stored."""
        assert check_anomaly(11, 0) == "empty_result"

    def test_severe_shrink(self):
        """❌ Fewer than five fetched items."""
        assert check_anomaly(20, 4) == "severe_shrink"

    def test_proportional_drop(self):
        """❌ More than 30% of the list vanished."""
        assert check_anomaly(100, 69) == "proportional_drop"

    def test_exactly_thirty_percent_allowed(self):
        """✅ A 30% drop is still trusted."""
        assert check_anomaly(100, 70) is None

    def test_boundaries_at_eleven_stored(self):
        """✅ Guard boundaries just past the trust threshold."""
        assert check_anomaly(11, 0) == "empty_result"
        assert check_anomaly(11, 4) == "severe_shrink"
        assert check_anomaly(11, 5) == "proportional_drop"
        assert check_anomaly(11, 7) == "proportional_drop"
        assert check_anomaly(11, 8) is None

    def test_growth_allowed(self):
        """✅ Growing lists are always trusted."""
        assert check_anomaly(20, 40) is None


# ============================================================================
# Tests for evaluate_snapshot
# ============================================================================

@pytest.mark.unit
class TestEvaluateSnapshot:
    """Test the combined decision."""

    def test_truncated_fetch_skipped(self):
        """❌ 20 stored + 1 fetched is skipped and not persisted."""
        decision = evaluate_snapshot(make_items(20), [make_item("new")])

        assert decision.action == SKIP
        assert decision.reason == "severe_shrink"
        assert not decision.should_persist
        assert not decision.should_notify

    def test_empty_fetch_skipped(self):
        """❌ Empty fetch over a trusted list."""
        decision = evaluate_snapshot(make_items(15), [])
        assert decision.action == SKIP
        assert decision.reason == "empty_result"

    def test_empty_fetch_small_list_is_unchanged(self):
        """✅ Small lists may legitimately become empty."""
        decision = evaluate_snapshot(make_items(3), [])

        assert decision.action == UNCHANGED
        assert decision.should_persist

    def test_cold_start_large(self):
        """✅ First sync of 10 items is stored silently."""
        decision = evaluate_snapshot([], make_items(10))

        assert decision.action == SYNC
        assert decision.reason == "cold_start"
        assert decision.should_persist
        assert not decision.should_notify

    def test_cold_start_small_notifies(self):
        """✅ First sync of two items notifies."""
        decision = evaluate_snapshot([], make_items(2))

        assert decision.action == NOTIFY
        assert len(decision.new_items) == 2

    def test_cold_start_three_items_is_sync(self):
        """✅ Three items on first sync are already too many to announce."""
        assert evaluate_snapshot([], make_items(3)).action == SYNC

    def test_new_items_notify(self):
        """✅ One added item on a trusted list."""
        stored = make_items(12)
        fetched = stored + [make_item("fresh")]

        decision = evaluate_snapshot(stored, fetched)

        assert decision.action == NOTIFY
        assert [i.product_id for i in decision.new_items] == ["fresh"]

    def test_no_change(self):
        """✅ Same snapshot yields nothing to notify."""
        stored = make_items(12)
        decision = evaluate_snapshot(stored, list(stored))

        assert decision.action == UNCHANGED
        assert decision.new_items == []

    def test_removals_only_persisted(self):
        """✅ A moderate removal is trusted so it can be recorded."""
        stored = make_items(12)
        decision = evaluate_snapshot(stored, stored[:10])

        assert decision.action == UNCHANGED
        assert decision.should_persist

    def test_second_evaluation_is_unchanged(self):
        """✅ Evaluating the persisted result again finds nothing new."""
        stored = make_items(12)
        fetched = stored + [make_item("fresh")]

        assert evaluate_snapshot(stored, fetched).action == NOTIFY
        assert evaluate_snapshot(fetched, fetched).action == UNCHANGED
