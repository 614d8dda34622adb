"""Rate oracle owning the tradable token pairs and their live rates.

All pair state lives in a private dict guarded by an asyncio.Lock. Callers
only ever receive copies of TokenPair, never the mutable state itself.

Rates react to committed swaps through the bounded impact curve in
``zborsa.pricing.impact`` and relax back toward the configured base rate
over time.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal

from zborsa.config import PricingSettings
from zborsa.exceptions import InvalidArgumentError, NotFoundError
from zborsa.logging import get_logger
from zborsa.models import SwapQuote, TokenPair
from zborsa.pricing.impact import clamp_rate, decay_factor, reverted_rate, swap_impact

logger = get_logger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")
RATE_QUANTUM = Decimal("0.00000001")


@dataclass
class _PairState:
    pair: TokenPair
    base_rate: Decimal
    recent_volume: Decimal = ZERO
    updated_at: float = 0.0


def validate_pair(pair: TokenPair) -> None:
    """Raise InvalidArgumentError unless the pair satisfies its invariants."""
    if not pair.from_token or not pair.to_token:
        raise InvalidArgumentError("Token pair requires from_token and to_token")
    if pair.from_token == pair.to_token:
        raise InvalidArgumentError("Token pair cannot convert a token into itself")
    if pair.rate <= ZERO:
        raise InvalidArgumentError(f"Rate must be positive, got {pair.rate}")
    if not (ZERO <= pair.fee < ONE):
        raise InvalidArgumentError(f"Fee must be in [0, 1), got {pair.fee}")
    if pair.min_amount < ZERO or pair.min_amount > pair.max_amount:
        raise InvalidArgumentError(
            f"Invalid amount bounds: min={pair.min_amount} max={pair.max_amount}"
        )


class RateOracle:
    """Prices swaps between token pairs and adjusts rates after each trade.

    Args:
        settings: Pricing settings with the default pairs and curve parameters.
        clock: Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        settings: PricingSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings or PricingSettings()
        if not (ZERO <= self._settings.max_deviation < ONE):
            raise InvalidArgumentError("max_deviation must be in [0, 1)")
        self._clock = clock
        self._half_life = self._settings.reversion_half_life_hours * 3600
        self._lock = asyncio.Lock()
        self._pairs: dict[tuple[str, str], _PairState] = {}
        self._load_defaults()

    def _load_defaults(self) -> None:
        now = self._clock()
        self._pairs = {}
        for pair in self._settings.pairs:
            validate_pair(pair)
            self._pairs[pair.key] = _PairState(
                pair=replace(pair), base_rate=pair.rate, updated_at=now
            )

    def _current_rate(self, state: _PairState, now: float) -> Decimal:
        decay = decay_factor(now - state.updated_at, self._half_life)
        rate = reverted_rate(state.pair.rate, state.base_rate, decay)
        return rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)

    def _active_state(self, from_token: str, to_token: str) -> _PairState | None:
        state = self._pairs.get((from_token, to_token))
        if state is None or not state.pair.is_active:
            return None
        return state

    # -- Quotes ------------------------------------------------------------

    async def get_rate(self, from_token: str, to_token: str) -> Decimal | None:
        """Return the current rate of an active pair, or None."""
        async with self._lock:
            state = self._active_state(from_token, to_token)
            if state is None:
                return None
            return self._current_rate(state, self._clock())

    async def estimate_output(
        self, from_token: str, to_token: str, amount: Decimal
    ) -> SwapQuote | None:
        """Quote a swap without changing any state.

        fee = amount * pair.fee; output = (amount - fee) * rate.

        Returns:
            SwapQuote, or None if no active pair exists.

        Raises:
            InvalidArgumentError: If amount is not positive.
        """
        if amount <= ZERO:
            raise InvalidArgumentError("Amount must be positive")
        async with self._lock:
            state = self._active_state(from_token, to_token)
            if state is None:
                return None
            rate = self._current_rate(state, self._clock())
            fee = amount * state.pair.fee
            return SwapQuote(output_amount=(amount - fee) * rate, fee=fee, rate=rate)

    async def is_valid_swap(self, from_token: str, to_token: str, amount: Decimal) -> bool:
        """True iff an active pair exists, tokens differ, and amount is within bounds."""
        if from_token == to_token:
            return False
        async with self._lock:
            state = self._active_state(from_token, to_token)
            if state is None:
                return False
            return state.pair.min_amount <= amount <= state.pair.max_amount

    # -- Demand feedback ---------------------------------------------------

    async def record_swap(self, from_token: str, to_token: str, amount: Decimal) -> None:
        """Apply the price impact of a committed swap to its pair.

        Unknown pairs are ignored (the pair may have been removed from
        configuration between quote and commit).
        """
        async with self._lock:
            state = self._pairs.get((from_token, to_token))
            if state is None:
                logger.warning("record_swap_unknown_pair", from_token=from_token, to_token=to_token)
                return

            now = self._clock()
            decay = decay_factor(now - state.updated_at, self._half_life)
            rate = reverted_rate(state.pair.rate, state.base_rate, decay)
            volume = state.recent_volume * decay

            impact = swap_impact(
                amount=amount,
                recent_volume=volume,
                sensitivity=self._settings.impact_sensitivity,
                depth=self._settings.depth,
                max_impact=self._settings.max_impact_per_swap,
            )
            new_rate = clamp_rate(
                rate * (ONE - impact), state.base_rate, self._settings.max_deviation
            ).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)

            state.pair.rate = new_rate
            state.recent_volume = volume + amount
            state.updated_at = now

            logger.debug(
                "pair_rate_adjusted",
                from_token=from_token,
                to_token=to_token,
                amount=str(amount),
                impact=str(impact),
                rate=str(new_rate),
                base_rate=str(state.base_rate),
            )

    # -- Snapshots ---------------------------------------------------------

    async def get_all_token_pairs(self, include_inactive: bool = False) -> list[TokenPair]:
        """Return copies of all pairs with their current rates."""
        async with self._lock:
            now = self._clock()
            return [
                replace(state.pair, rate=self._current_rate(state, now))
                for state in self._pairs.values()
                if include_inactive or state.pair.is_active
            ]

    async def get_token_pairs(self, token: str) -> list[TokenPair]:
        """Return active pairs where ``token`` is either side."""
        pairs = await self.get_all_token_pairs()
        return [p for p in pairs if token in (p.from_token, p.to_token)]

    # -- Administration ----------------------------------------------------

    async def upsert_pair(self, pair: TokenPair) -> TokenPair:
        """Add or replace a pair. Its rate becomes the new base rate."""
        validate_pair(pair)
        async with self._lock:
            self._pairs[pair.key] = _PairState(
                pair=replace(pair), base_rate=pair.rate, updated_at=self._clock()
            )
        logger.info(
            "token_pair_upserted",
            from_token=pair.from_token,
            to_token=pair.to_token,
            rate=str(pair.rate),
            fee=str(pair.fee),
            is_active=pair.is_active,
        )
        return replace(pair)

    async def set_pair_active(self, from_token: str, to_token: str, is_active: bool) -> None:
        """Activate or deactivate a pair. Pairs are never deleted."""
        async with self._lock:
            state = self._pairs.get((from_token, to_token))
            if state is None:
                raise NotFoundError(f"Token pair {from_token}->{to_token} not found")
            state.pair.is_active = is_active
        logger.info(
            "token_pair_activation_changed",
            from_token=from_token,
            to_token=to_token,
            is_active=is_active,
        )

    async def reset_rates(self) -> None:
        """Restore configured default pairs and clear recent volume."""
        async with self._lock:
            self._load_defaults()
        logger.info("token_rates_reset", pair_count=len(self._pairs))
