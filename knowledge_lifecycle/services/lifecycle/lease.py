# knowledge_lifecycle/services/lifecycle/lease.py
"""
Single-sweep lease kept as an object in the store.

Object stores offer no compare-and-swap through this interface, so two
sweeps starting at the same instant can both win. The lease only keeps a
scheduled sweep from starting while a manual one is still running.
"""

import json
import logging
import socket
import uuid
from datetime import datetime, timedelta, timezone

from knowledge_lifecycle.exceptions import SweepInProgressError
from knowledge_lifecycle.services.lifecycle.context import SweepContext
from knowledge_lifecycle.storage.base import ContentType

logger = logging.getLogger(__name__)


class SweepLease:
    """
    Async context manager holding the lifecycle lease for one sweep.

    Usage:
        async with SweepLease(ctx, "temp/archives/.lifecycle.lease", operation="archive"):
            ...
    """

    def __init__(
        self,
        ctx: SweepContext,
        key: str,
        operation: str,
        ttl_seconds: int = 3600,
        owner: str | None = None,
    ):
        self.ctx = ctx
        self.key = key
        self.operation = operation
        self.ttl_seconds = ttl_seconds
        self.owner = owner or f"{socket.gethostname()}:{uuid.uuid4().hex[:8]}"
        self._held = False

    async def _read_current(self) -> dict | None:
        if not await self.ctx.exists(self.key):
            return None
        try:
            raw = await self.ctx.download(self.key)
            data = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            logger.warning(f"Ignoring unreadable lease {self.key}: {e}")
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _expired(data: dict, now: datetime) -> bool:
        try:
            expires_at = datetime.fromisoformat(data["expires_at"])
        except (KeyError, TypeError, ValueError):
            return True
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now

    async def acquire(self) -> None:
        now = datetime.now(timezone.utc)
        current = await self._read_current()
        if current and not self._expired(current, now) and current.get("owner") != self.owner:
            raise SweepInProgressError(
                f"Another sweep ({current.get('operation', 'unknown')}) holds the lease "
                f"until {current.get('expires_at')} (owner {current.get('owner')})"
            )

        record = {
            "owner": self.owner,
            "operation": self.operation,
            "acquired_at": now.isoformat(),
            "expires_at": (now + timedelta(seconds=self.ttl_seconds)).isoformat(),
        }
        await self.ctx.upload(self.key, json.dumps(record).encode("utf-8"), ContentType.APPLICATION_JSON)
        self._held = True
        logger.debug(f"Lease acquired: {self.key} by {self.owner} for {self.operation}")

    async def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            current = await self._read_current()
            if current and current.get("owner") != self.owner:
                logger.warning(f"Lease {self.key} was taken over by {current.get('owner')}; leaving it")
                return
            await self.ctx.delete(self.key)
            logger.debug(f"Lease released: {self.key}")
        except Exception as e:
            # The lease expires on its own after ttl_seconds
            logger.warning(f"Failed to release lease {self.key}: {e}")

    async def __aenter__(self) -> "SweepLease":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.release()
