"""Rider directory port (abstract interface).

The rider roster is maintained by a separate screen; this context only
reads it to validate and name the rider an order is dispatched with.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Rider:
    id: str
    name: str
    contact: str | None = None
    id_number: str | None = None
    company_name: str | None = None


class RiderDirectory(ABC):
    """Abstract interface for rider directory adapters."""

    @abstractmethod
    def list_riders(self) -> list[Rider]:
        """Return every rider available for dispatch."""
        ...

    def get_rider(self, rider_id: str) -> Rider | None:
        return next((r for r in self.list_riders() if str(r.id) == str(rider_id)), None)
