"""
Knowledge data lifecycle and archival engine.

Keeps an object-store knowledge base bounded: inventories the hot tier,
archives aged objects into ZIP bundles, removes duplicate records, and
exports the whole corpus on demand.
"""

__version__ = "0.1.0"
