# ABOUTME: UsageQuota protocol for the external per-user scan quota collaborator.
# ABOUTME: Consumed as a yes/no gate before scanning plus an increment afterwards.

from typing import Protocol, runtime_checkable


@runtime_checkable
class UsageQuota(Protocol):
    """Protocol for scan-quota accounting, keyed by caller identity."""

    async def may_scan(self, user_id: str) -> bool: ...

    async def record_scan(self, user_id: str) -> None: ...


class UnlimitedQuota:
    """Quota that admits every scan and records nothing."""

    async def may_scan(self, user_id: str) -> bool:
        return True

    async def record_scan(self, user_id: str) -> None:
        return None
