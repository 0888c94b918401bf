"""
Contracts the engine consumes from its collaborators.

The request store is the only place where shared mutable state lives.  Its
``conditional_update`` must be evaluated atomically by the backing store
("update this record iff it still matches *expected*"), never as a read
followed by a write in the caller, so the guarantee survives running the
service in several processes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional

from .entities import DeliveryRequest, Driver
from .enums import DeliveryStatus


class RequestStore(ABC):
    @abstractmethod
    async def create(self, request: DeliveryRequest) -> int: ...

    @abstractmethod
    async def find_by_id(self, request_id: int) -> Optional[DeliveryRequest]: ...

    @abstractmethod
    async def find_by_idempotency_key(
        self, key: str
    ) -> Optional[DeliveryRequest]: ...

    @abstractmethod
    async def conditional_update(
        self,
        request_id: int,
        expected: Mapping[str, Any],
        patch: Mapping[str, Any],
    ) -> bool:
        """Apply *patch* iff every field in *expected* still matches."""

    @abstractmethod
    async def list(
        self,
        *,
        status: Optional[DeliveryStatus] = None,
        customer_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        pickup_cells: Optional[Iterable[str]] = None,
    ) -> list[DeliveryRequest]: ...


class DriverDirectory(ABC):
    @abstractmethod
    async def list_available(self) -> list[Driver]:
        """Snapshot of the drivers currently marked available."""

    @abstractmethod
    async def get(self, driver_id: int) -> Optional[Driver]: ...

    @abstractmethod
    async def claim(self, driver_id: int) -> bool:
        """Mark the driver busy iff it is still available."""

    @abstractmethod
    async def release(self, driver_id: int, completed_delivery: bool = False) -> None:
        """Mark the driver available again, counting a finished delivery."""
