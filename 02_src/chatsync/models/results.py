"""Result values returned across component boundaries."""

from dataclasses import dataclass
from typing import Any


@dataclass
class SyncResult:
    """Outcome of a network-backed operation; errors are values, not exceptions."""

    success: bool
    data: Any = None
    error: str | None = None
    # HTTP status reported by the transport, when the failure came from there
    status_code: int | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "SyncResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls, error: str, data: Any = None, status_code: int | None = None
    ) -> "SyncResult":
        return cls(success=False, data=data, error=error, status_code=status_code)
