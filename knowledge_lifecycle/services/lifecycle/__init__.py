# knowledge_lifecycle/services/lifecycle/__init__.py
"""
Knowledge lifecycle services for the knowledge-base object store.

Retention tiers by object age:
- Fresh: younger than the archive threshold, untouched
- Archivable: bundled into temp/archives, then removed from the hot tier
- Deletable: eligible for hard deletion via delete_old_data

Services:
- inventory: Hot-tier snapshot with ages and totals
- classifier: Partition into retention tiers
- packager: Bundle, upload, then delete
- duplicates: Content-digest duplicate detection
- exporter: Full-corpus export bundle
- catalog: Archive bundle listing
- service: Operations exposed to schedulers and admins
"""

from knowledge_lifecycle.services.lifecycle.classifier import classify, select_older_than
from knowledge_lifecycle.services.lifecycle.duplicates import ContentHasher
from knowledge_lifecycle.services.lifecycle.models import (
    ArchiveBundle,
    ArchiveBundleMeta,
    ArchiveResult,
    DeleteResult,
    DuplicatePair,
    DuplicateRemovalResult,
    ExportResult,
    RetentionClassification,
    RetentionPolicy,
    StorageInventory,
)
from knowledge_lifecycle.services.lifecycle.service import (
    KnowledgeLifecycleService,
    create_lifecycle_service,
    policy_from_settings,
)

__all__ = [
    # Service
    "KnowledgeLifecycleService",
    "create_lifecycle_service",
    "policy_from_settings",
    # Policy
    "RetentionPolicy",
    "RetentionClassification",
    "classify",
    "select_older_than",
    "ContentHasher",
    # Results
    "StorageInventory",
    "DuplicatePair",
    "ArchiveBundle",
    "ArchiveBundleMeta",
    "ArchiveResult",
    "DeleteResult",
    "DuplicateRemovalResult",
    "ExportResult",
]
