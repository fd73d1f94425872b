"""SweepLock Protocol: at most one sweep run at a time."""
from typing import Protocol


class SweepLockProtocol(Protocol):
    async def acquire(self, ttl_seconds: int) -> str | None:
        """Return an owner token, or None if another run holds the lock."""
        ...

    async def release(self, token: str) -> None: ...
