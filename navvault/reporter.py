"""
reporter.py - Bounded-rate price reporter

Provides a manipulation-resistant price-per-share for valuing vault shares.
An authorized updater submits one target per round; the reported price does not
jump to it but glides from the price realized at update time toward the target,
moving at most `max_deviation_per_period` basis points of the start price per
elapsed `deviation_time_period`.

Key insight: the reporter stores only the two endpoints of the active transition
(start price/time and target). The current price is a pure function of the clock:

    periods   = floor(elapsed_seconds / deviation_time_period)
    allowance = start * bps * periods / 10_000        (saturating)
    price     = start ± min(allowance, |target - start|)

No history is archived beyond the active transition window.

State machine:
    Idle (start == target) --update()--> Transitioning
    Transitioning --time--> effectively Idle once allowance >= distance
    update() of a move that fits within one period goes straight back to Idle.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Set
import logging

from .core import (
    BPS_DENOMINATOR, MAX_UINT256,
    Capability, CapabilityAuthority, LogicalClock,
    InvalidDeviation, InvalidPrice, InvalidSource, AuthorizationError,
    elapsed_seconds, is_null_address, require_address, require_capability,
    saturating_mul, saturating_sub,
)
from .events import EventLog, EventType

logger = logging.getLogger(__name__)


# ============================================================================
# STATE
# ============================================================================

@dataclass(frozen=True, slots=True)
class PriceState:
    """
    Snapshot of the reporter's transition endpoints and rate parameters.

    Attributes:
        current_round: Starts at 1, increments once per accepted update
        target_price: Price the active transition glides toward (PRICE_SCALE fixed point)
        transition_start_price: Price realized when the transition began
        transition_start_time: When the transition began
        last_update_at: Time of the last accepted update (or construction)
        max_deviation_per_period: Allowed movement per period, in bps of the start price
        deviation_time_period: Period length in seconds
        last_source: Source tag of the last accepted update
    """
    current_round: int
    target_price: int
    transition_start_price: int
    transition_start_time: datetime
    last_update_at: datetime
    max_deviation_per_period: int
    deviation_time_period: int
    last_source: str = ""


# ============================================================================
# PURE FUNCTIONS - The math, nothing else
# ============================================================================

def compute_period_allowance(start_price: int, max_deviation_bps: int, periods: int) -> int:
    """
    Maximum distance the price may cover after `periods` whole periods.

    allowance = start * bps * periods / 10_000, saturating at MAX_UINT256.

    Departs from the pure bps formula with a floor of one base unit per
    elapsed period, so a tiny start price cannot stall a transition. This is
    unrelated to the zero floor interpolate_price() applies to downward moves.
    """
    if periods <= 0:
        return 0
    product = saturating_mul(start_price, max_deviation_bps, periods)
    if product == MAX_UINT256:
        return MAX_UINT256
    return max(product // BPS_DENOMINATOR, periods)


def interpolate_price(state: PriceState, now: datetime) -> int:
    """
    Price realized at `now` for the given transition state.

    The candidate moves from start toward target by the elapsed allowance and is
    clamped at the target in either direction, and at zero when moving down.
    """
    start = state.transition_start_price
    target = state.target_price
    if start == target:
        return target

    periods = elapsed_seconds(state.transition_start_time, now) // state.deviation_time_period
    if periods == 0:
        return start

    allowance = compute_period_allowance(start, state.max_deviation_per_period, periods)
    if target > start:
        if allowance >= target - start:
            return target
        return start + allowance
    if allowance >= start - target:
        return target
    return saturating_sub(start, allowance)


def transition_progress(state: PriceState, now: datetime) -> int:
    """Distance covered so far, in bps of the total distance (10_000 when settled)."""
    start = state.transition_start_price
    target = state.target_price
    if start == target:
        return BPS_DENOMINATOR
    total = abs(target - start)
    covered = abs(interpolate_price(state, now) - start)
    return min(BPS_DENOMINATOR, covered * BPS_DENOMINATOR // total)


def periods_to_settle(start_price: int, target_price: int, max_deviation_bps: int) -> int:
    """
    Smallest number of whole periods after which the price equals the target.

    Returns 0 when start already equals target.
    """
    distance = abs(target_price - start_price)
    if distance == 0:
        return 0
    rate = start_price * max_deviation_bps
    if rate == 0:
        return distance
    by_rate = -(-distance * BPS_DENOMINATOR // rate)
    return min(by_rate, distance)


def _validate_deviation(max_deviation_bps: int, deviation_period: int) -> None:
    if isinstance(max_deviation_bps, bool) or not isinstance(max_deviation_bps, int) or max_deviation_bps <= 0:
        raise InvalidDeviation(f"max_deviation_bps must be a positive int, got {max_deviation_bps!r}")
    if isinstance(deviation_period, bool) or not isinstance(deviation_period, int) or deviation_period <= 0:
        raise InvalidDeviation(f"deviation_period must be a positive int of seconds, got {deviation_period!r}")


def _validate_price(price: int, label: str = "price") -> None:
    if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
        raise InvalidPrice(f"{label} must be a positive int, got {price!r}")


# ============================================================================
# REPORTER
# ============================================================================

class PriceReporter:
    """
    Bounded-rate price reporter.

    Updates are accepted from principals in the reporter's updater set, or from
    principals the authority grants Capability.UPDATER. Administrative calls
    require Capability.OWNER.

    Thread Safety:
        Not thread-safe. Every call runs to completion before the next.

    Example:
        reporter = PriceReporter(
            initial_price=10 ** 18,
            updater="oracle",
            max_deviation_bps=1000,      # 10% of the start price...
            deviation_period=60,         # ...per minute
            authority=roles,
            clock=clock,
        )
        reporter.update("oracle", 115 * 10 ** 16, "nav-calc")
        reporter.get_current_price()     # still 1.0 until a minute elapses
    """

    name = "PriceReporter"

    def __init__(
        self,
        initial_price: int,
        updater: str,
        max_deviation_bps: int,
        deviation_period: int,
        authority: CapabilityAuthority,
        clock: LogicalClock,
        events: Optional[EventLog] = None,
        source: str = "genesis",
    ):
        _validate_price(initial_price, "initial_price")
        _validate_deviation(max_deviation_bps, deviation_period)
        require_address(updater, "updater")

        self.authority = authority
        self.clock = clock
        self.events = events if events is not None else EventLog()
        self._updaters: Set[str] = {updater}
        now = clock.now
        self._state = PriceState(
            current_round=1,
            target_price=initial_price,
            transition_start_price=initial_price,
            transition_start_time=now,
            last_update_at=now,
            max_deviation_per_period=max_deviation_bps,
            deviation_time_period=deviation_period,
            last_source=source,
        )

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def state(self) -> PriceState:
        """Current transition state (immutable snapshot)."""
        return self._state

    @property
    def current_round(self) -> int:
        return self._state.current_round

    @property
    def target_price(self) -> int:
        return self._state.target_price

    def get_current_price(self) -> int:
        """Price realized at the clock's current time."""
        return interpolate_price(self._state, self.clock.now)

    def get_transition_progress(self) -> int:
        """Progress of the active transition in bps, 10_000 when settled."""
        return transition_progress(self._state, self.clock.now)

    def report(self) -> int:
        """Price snapshot for external consumers (the share ledger)."""
        return self.get_current_price()

    def is_transitioning(self) -> bool:
        return self.get_current_price() != self._state.target_price

    def is_updater(self, address: str) -> bool:
        return address in self._updaters or (
            not is_null_address(address)
            and self.authority.has_capability(address, Capability.UPDATER)
        )

    def seconds_since_update(self) -> int:
        return elapsed_seconds(self._state.last_update_at, self.clock.now)

    # ========================================================================
    # UPDATES
    # ========================================================================

    def update(self, caller: str, new_target: int, source: str) -> PriceState:
        """
        Start a transition from the currently realized price toward new_target.

        The realized price (not the old target, not the old start) becomes the new
        start. When the move fits in one period's allowance the transition
        completes immediately.

        Raises:
            AuthorizationError: caller is not an authorized updater
            InvalidSource: source tag is empty
            InvalidPrice: new_target is not a positive int
        """
        if not self.is_updater(caller):
            raise AuthorizationError(f"{caller!r} is not an authorized updater")
        if not source or not source.strip():
            raise InvalidSource("price update source cannot be empty")
        _validate_price(new_target, "new_target")

        now = self.clock.now
        state = self._state
        realized = interpolate_price(state, now)
        one_period = compute_period_allowance(realized, state.max_deviation_per_period, 1)
        start = new_target if abs(new_target - realized) <= one_period else realized

        self._state = replace(
            state,
            current_round=state.current_round + 1,
            target_price=new_target,
            transition_start_price=start,
            transition_start_time=now,
            last_update_at=now,
            last_source=source,
        )
        self.events.emit(
            EventType.PRICE_UPDATED, self.name, now,
            round=self._state.current_round,
            target=new_target,
            start=realized,
            source=source,
        )
        logger.debug(
            "round %d: %d -> %d (%s)%s",
            self._state.current_round, realized, new_target, source,
            " instant" if start == new_target else "",
        )
        return self._state

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    def set_updater(self, caller: str, address: str, allowed: bool) -> None:
        """Add or remove an address from the updater set (owner only)."""
        require_capability(self.authority, caller, Capability.OWNER, "set_updater")
        require_address(address, "updater")
        if allowed:
            self._updaters.add(address)
        else:
            self._updaters.discard(address)
        self.events.emit(
            EventType.UPDATER_SET, self.name, self.clock.now,
            updater=address, allowed=allowed,
        )
        logger.info("updater %s %s", address, "enabled" if allowed else "disabled")

    def force_complete_transition(self, caller: str) -> None:
        """Jump straight to the target price (owner only)."""
        require_capability(self.authority, caller, Capability.OWNER, "force_complete_transition")
        now = self.clock.now
        realized = interpolate_price(self._state, now)
        self._state = replace(
            self._state,
            transition_start_price=self._state.target_price,
            transition_start_time=now,
        )
        self.events.emit(
            EventType.TRANSITION_FORCED, self.name, now,
            round=self._state.current_round,
            from_price=realized,
            target=self._state.target_price,
        )
        logger.info("transition forced to %d", self._state.target_price)

    def set_max_deviation(self, caller: str, new_bps: int, new_period: int) -> None:
        """
        Change the rate parameters (owner only).

        The currently realized price is persisted as the new start first, so the
        change never causes a price jump by itself.

        Raises:
            AuthorizationError: caller is not an owner
            InvalidDeviation: new_bps or new_period is not positive
        """
        require_capability(self.authority, caller, Capability.OWNER, "set_max_deviation")
        _validate_deviation(new_bps, new_period)

        now = self.clock.now
        state = self._state
        realized = interpolate_price(state, now)
        self._state = replace(
            state,
            transition_start_price=realized,
            transition_start_time=now,
            max_deviation_per_period=new_bps,
            deviation_time_period=new_period,
        )
        self.events.emit(
            EventType.MAX_DEVIATION_UPDATED, self.name, now,
            old_bps=state.max_deviation_per_period,
            new_bps=new_bps,
            old_period=state.deviation_time_period,
            new_period=new_period,
        )
        logger.info(
            "max deviation %d bps/%ds -> %d bps/%ds",
            state.max_deviation_per_period, state.deviation_time_period, new_bps, new_period,
        )

    def __repr__(self) -> str:
        s = self._state
        return (
            f"PriceReporter(round={s.current_round}, price={self.get_current_price()}, "
            f"target={s.target_price}, {s.max_deviation_per_period}bps/{s.deviation_time_period}s)"
        )
