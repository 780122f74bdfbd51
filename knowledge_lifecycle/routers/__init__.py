# knowledge_lifecycle/routers/__init__.py
"""
API routers for admin endpoints.
"""

from knowledge_lifecycle.routers.admin_lifecycle import router as admin_lifecycle_router

__all__ = [
    "admin_lifecycle_router",
]
