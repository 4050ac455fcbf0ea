from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Connector(Protocol):
    """Long-lived handle on one external system.

    Each family adds an ``execute`` primitive in its own shape and raises
    ``BackendFailure`` when the system refuses or fails an operation.
    """

    name: str

    async def start(self) -> None:
        """Open connections or verify the backend is reachable."""
        ...

    async def close(self) -> None:
        """Release everything ``start`` acquired. Safe to call twice."""
        ...
