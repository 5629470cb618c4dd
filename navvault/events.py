"""
events.py - Observable vault events

Every state-changing operation appends one immutable VaultEvent to an EventLog.
The log is the audit trail of the vault: it is append-only, sequence-numbered and
may be shared between the reporter, the strategy and the share ledger so that a
single ordering covers all three.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional
import logging

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Kinds of events emitted by vault components."""
    COLLATERAL_ADDED = "CollateralAdded"
    COLLATERAL_REMOVED = "CollateralRemoved"
    COLLATERAL_DEPOSITED = "CollateralDeposited"
    COLLATERAL_WITHDRAWN = "CollateralWithdrawn"
    COLLATERAL_REBALANCED = "CollateralRebalanced"
    LIQUIDITY_ADDED = "LiquidityAdded"
    LIQUIDITY_REMOVED = "LiquidityRemoved"
    PRICE_UPDATED = "PriceUpdated"
    UPDATER_SET = "UpdaterSet"
    MAX_DEVIATION_UPDATED = "MaxDeviationUpdated"
    TRANSITION_FORCED = "TransitionForced"
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    SHARE_TRANSFER = "Transfer"
    PAUSED = "Paused"
    UNPAUSED = "Unpaused"


@dataclass(frozen=True, slots=True)
class VaultEvent:
    """
    Immutable record of one observable state change.

    Attributes:
        sequence: Monotonic position within the owning log
        event_type: What happened
        emitter: Name of the component that emitted the event
        timestamp: Logical time of emission
        payload: Event arguments (amounts, assets, principals)
    """
    sequence: int
    event_type: EventType
    emitter: str
    timestamp: datetime
    payload: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.payload[key]

    def __repr__(self) -> str:
        w = 80
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            f"┌{bar}┐",
            f"│{pad(f' #{self.sequence} {self.event_type.value} ({self.emitter})')}│",
            f"│{pad('   timestamp : ' + self.timestamp.isoformat())}│",
        ]
        for key in sorted(self.payload):
            lines.append(f"│{pad(f'   {key:<10}: {self.payload[key]!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


class EventLog:
    """
    Append-only event log.

    Example:
        log = EventLog()
        reporter = PriceReporter(..., events=log)
        strategy = CollateralStrategy(..., events=log)
        log.of_type(EventType.PRICE_UPDATED)
    """

    def __init__(self, verbose: bool = False):
        self._events: List[VaultEvent] = []
        self.verbose = verbose

    def emit(
        self,
        event_type: EventType,
        emitter: str,
        timestamp: datetime,
        **payload: Any,
    ) -> VaultEvent:
        """Append an event and return it."""
        event = VaultEvent(
            sequence=len(self._events),
            event_type=event_type,
            emitter=emitter,
            timestamp=timestamp,
            payload=dict(payload),
        )
        self._events.append(event)
        logger.debug("%s #%d from %s: %s", event_type.value, event.sequence, emitter, payload)
        if self.verbose:
            print(repr(event))
        return event

    def of_type(self, event_type: EventType) -> List[VaultEvent]:
        """All events of one type, in emission order."""
        return [e for e in self._events if e.event_type is event_type]

    def last(self, event_type: Optional[EventType] = None) -> Optional[VaultEvent]:
        """Most recent event, optionally restricted to one type."""
        for event in reversed(self._events):
            if event_type is None or event.event_type is event_type:
                return event
        return None

    def __iter__(self) -> Iterator[VaultEvent]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def __repr__(self) -> str:
        return f"EventLog({len(self._events)} events)"
