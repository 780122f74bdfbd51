# tests/unit/test_lifecycle/test_classifier.py
"""Unit tests for the retention classifier and policy validation."""

import pytest

from knowledge_lifecycle.exceptions import PolicyError
from knowledge_lifecycle.services.lifecycle.classifier import classify, select_older_than, validate_days
from knowledge_lifecycle.services.lifecycle.models import RetentionPolicy, StorageInventory
from knowledge_lifecycle.storage.base import StorageObject


def make_inventory(ages: dict[str, int]) -> StorageInventory:
    objects = [StorageObject(path=path, size_bytes=1, age_days=age) for path, age in ages.items()]
    return StorageInventory(total_files=len(objects), objects=objects)


class TestRetentionPolicy:
    """Tests for RetentionPolicy validation."""

    def test_valid_policy(self):
        policy = RetentionPolicy(archive_threshold_days=30, deletion_threshold_days=90)
        assert policy.to_dict() == {"archive_threshold_days": 30, "deletion_threshold_days": 90}

    def test_equal_thresholds_allowed(self):
        policy = RetentionPolicy(archive_threshold_days=30, deletion_threshold_days=30)
        assert policy.deletion_threshold_days == 30

    def test_deletion_before_archive_rejected(self):
        with pytest.raises(PolicyError, match="deletion_threshold_days"):
            RetentionPolicy(archive_threshold_days=90, deletion_threshold_days=30)

    @pytest.mark.parametrize("value", [0, -1, 1.5, "30", True, None])
    def test_non_positive_or_non_integer_rejected(self, value):
        with pytest.raises(PolicyError):
            RetentionPolicy(archive_threshold_days=value, deletion_threshold_days=90)

    def test_policy_error_is_value_error(self):
        with pytest.raises(ValueError):
            RetentionPolicy(archive_threshold_days=0, deletion_threshold_days=90)

    def test_policy_error_stage(self):
        with pytest.raises(PolicyError) as exc_info:
            RetentionPolicy(archive_threshold_days=0, deletion_threshold_days=90)
        assert exc_info.value.stage == "policy"


class TestClassify:
    """Tests for classify()."""

    def test_tiers_for_mixed_ages(self):
        inventory = make_inventory({"a": 10, "b": 29, "c": 31, "d": 95, "e": 400})
        policy = RetentionPolicy(archive_threshold_days=30, deletion_threshold_days=90)

        result = classify(inventory, policy)

        assert [o.path for o in result.fresh] == ["a", "b"]
        assert [o.path for o in result.archivable] == ["c"]
        assert [o.path for o in result.deletable] == ["d", "e"]

    def test_boundaries(self):
        inventory = make_inventory({"archive_edge": 30, "delete_edge": 90, "just_fresh": 29, "just_archivable": 89})
        policy = RetentionPolicy(archive_threshold_days=30, deletion_threshold_days=90)

        result = classify(inventory, policy)

        assert [o.path for o in result.fresh] == ["just_fresh"]
        assert [o.path for o in result.archivable] == ["archive_edge", "just_archivable"]
        assert [o.path for o in result.deletable] == ["delete_edge"]

    def test_every_object_in_exactly_one_tier(self):
        ages = {f"obj{i}": i * 7 for i in range(40)}
        inventory = make_inventory(ages)
        policy = RetentionPolicy(archive_threshold_days=14, deletion_threshold_days=60)

        result = classify(inventory, policy)

        tiers = [result.fresh, result.archivable, result.deletable]
        paths = [o.path for tier in tiers for o in tier]
        assert sorted(paths) == sorted(ages)
        assert len(paths) == len(set(paths))

    def test_equal_thresholds_leave_archivable_empty(self):
        inventory = make_inventory({"a": 29, "b": 30, "c": 31})
        policy = RetentionPolicy(archive_threshold_days=30, deletion_threshold_days=30)

        result = classify(inventory, policy)

        assert result.archivable == []
        assert [o.path for o in result.deletable] == ["b", "c"]

    def test_empty_inventory(self):
        result = classify(StorageInventory(), RetentionPolicy(30, 90))
        assert (result.fresh, result.archivable, result.deletable) == ([], [], [])

    def test_rejects_non_policy(self):
        with pytest.raises(PolicyError):
            classify(make_inventory({"a": 1}), {"archive_threshold_days": 30, "deletion_threshold_days": 90})


class TestSelectOlderThan:
    def test_inclusive_threshold(self):
        inventory = make_inventory({"a": 89, "b": 90, "c": 91})
        assert [o.path for o in select_older_than(inventory, 90)] == ["b", "c"]

    def test_invalid_threshold(self):
        with pytest.raises(PolicyError):
            select_older_than(make_inventory({}), 0)


class TestValidateDays:
    def test_returns_value(self):
        assert validate_days(7) == 7

    @pytest.mark.parametrize("value", [0, -5, 2.0, "7", False])
    def test_invalid(self, value):
        with pytest.raises(PolicyError, match="days_threshold"):
            validate_days(value)
