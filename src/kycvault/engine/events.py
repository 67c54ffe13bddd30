"""Event records emitted by successful vault operations."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar

E = TypeVar("E", bound="Event")


@dataclass(frozen=True)
class Event:
    """Base event. `timestamp` is the clock reading when the operation ran."""
    timestamp: int

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            # Enums serialize by name
            if hasattr(value, "name") and not isinstance(value, str):
                data[key] = value.name
        data["event"] = self.name
        return data


@dataclass(frozen=True)
class ModeChanged(Event):
    previous: Any
    new: Any


@dataclass(frozen=True)
class Deposited(Event):
    sender: str
    receiver: str
    amount: int


@dataclass(frozen=True)
class KycStatusChanged(Event):
    account: str
    approved: bool


@dataclass(frozen=True)
class CohortReallocated(Event):
    accounts: tuple
    approved: bool
    shares_moved: int


@dataclass(frozen=True)
class TreasuryDeployed(Event):
    treasury: str
    amount: int


@dataclass(frozen=True)
class Redeemed(Event):
    path: str  # "non_kyc", "recovery" or "bridge"
    caller: str
    owner: str
    receiver: str
    shares: int
    principal_paid: int = 0
    settlement_paid: int = 0


@dataclass(frozen=True)
class Transferred(Event):
    sender: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class Swept(Event):
    asset: str
    to: str
    amount: int


@dataclass(frozen=True)
class DepositWindowUpdated(Event):
    start: int
    end: int


@dataclass(frozen=True)
class DepositCapUpdated(Event):
    cap: int


@dataclass(frozen=True)
class BridgeUpdated(Event):
    previous: Optional[str]
    new: str


@dataclass(frozen=True)
class TreasuryUpdated(Event):
    previous: Optional[str]
    new: str


@dataclass(frozen=True)
class RoleChanged(Event):
    role: Any
    account: str
    granted: bool


@dataclass
class EventLog:
    """Append-only event list that can be truncated back by a failed unit of work."""
    events: List[Event] = field(default_factory=list)

    def emit(self, event: Event) -> Event:
        self.events.append(event)
        return event

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e for e in self.events if isinstance(e, event_type)]

    def snapshot(self) -> int:
        return len(self.events)

    def restore(self, snapshot: int) -> None:
        del self.events[snapshot:]

    def __iter__(self) -> Iterator[Event]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)
