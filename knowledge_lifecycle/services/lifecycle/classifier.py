# knowledge_lifecycle/services/lifecycle/classifier.py
"""
Retention classifier.

Pure functions over an already-collected inventory; no store reads.
"""

from knowledge_lifecycle.exceptions import PolicyError
from knowledge_lifecycle.services.lifecycle.models import (
    RetentionClassification,
    RetentionPolicy,
    StorageInventory,
)
from knowledge_lifecycle.storage.base import StorageObject


def validate_days(days: int, name: str = "days_threshold") -> int:
    """Thresholds are positive whole days."""
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise PolicyError(f"{name} must be a positive integer, got {days!r}")
    return days


def classify(inventory: StorageInventory, policy: RetentionPolicy) -> RetentionClassification:
    """
    Partition every scanned object into exactly one retention tier.

    - fresh:      age < archive_threshold_days
    - archivable: archive_threshold_days <= age < deletion_threshold_days
    - deletable:  age >= deletion_threshold_days

    Inventory order is preserved within each tier.
    """
    if not isinstance(policy, RetentionPolicy):
        raise PolicyError(f"Expected RetentionPolicy, got {type(policy).__name__}")

    result = RetentionClassification()
    for obj in inventory.objects:
        if obj.age_days >= policy.deletion_threshold_days:
            result.deletable.append(obj)
        elif obj.age_days >= policy.archive_threshold_days:
            result.archivable.append(obj)
        else:
            result.fresh.append(obj)
    return result


def select_older_than(inventory: StorageInventory, days_threshold: int) -> list[StorageObject]:
    """Objects whose age is at least days_threshold."""
    validate_days(days_threshold)
    return [obj for obj in inventory.objects if obj.age_days >= days_threshold]
