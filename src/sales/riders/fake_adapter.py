"""In-memory rider directory for development and testing."""

from sales.riders.port import Rider, RiderDirectory


class FakeRiderDirectory(RiderDirectory):
    def __init__(self, riders: list[Rider] | None = None) -> None:
        self.riders: list[Rider] = list(riders or [])
        self.should_succeed: bool = True
        self.failure_reason: str = "Rider directory unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Rider directory unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def add_rider(self, rider_id: str, name: str, **details) -> Rider:
        rider = Rider(id=str(rider_id), name=name, **details)
        self.riders.append(rider)
        return rider

    def list_riders(self) -> list[Rider]:
        self.calls.append({"method": "list_riders"})
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        return list(self.riders)
