"""Demand-driven rate adjustment curve.

Pure Decimal functions used by RateOracle:

  decay      = 0.5 ** (elapsed / half_life)
  impact     = min(max_impact, sensitivity * amount / (recent_volume + amount + depth))
  new_rate   = clamp(rate * (1 - impact), base * (1 - max_deviation), base * (1 + max_deviation))

Impact grows monotonically with trade size and is capped per call. Between
trades the rate relaxes back toward its base and recent volume fades, so
repeated trading cannot push a pair arbitrarily far.
"""

from decimal import Decimal

ZERO = Decimal("0")
ONE = Decimal("1")


def decay_factor(elapsed_seconds: float, half_life_seconds: float) -> Decimal:
    """Fraction of a deviation that survives after ``elapsed_seconds``.

    Returns 1 for non-positive elapsed time and 0 when half-life is disabled (<= 0).
    """
    if elapsed_seconds <= 0:
        return ONE
    if half_life_seconds <= 0:
        return ZERO
    return Decimal(str(0.5 ** (elapsed_seconds / half_life_seconds)))


def reverted_rate(rate: Decimal, base_rate: Decimal, decay: Decimal) -> Decimal:
    """Move ``rate`` back toward ``base_rate`` keeping ``decay`` of the gap."""
    return base_rate + (rate - base_rate) * decay


def swap_impact(
    amount: Decimal,
    recent_volume: Decimal,
    sensitivity: Decimal,
    depth: Decimal,
    max_impact: Decimal,
) -> Decimal:
    """Fractional rate reduction caused by a swap of ``amount``.

    Args:
        amount: Size of the committed swap (source token units).
        recent_volume: Decayed volume traded on the pair before this swap.
        sensitivity: Scale of the impact at full relative size.
        depth: Virtual liquidity added to the denominator.
        max_impact: Ceiling per call.

    Returns:
        Impact in [0, max_impact].
    """
    if amount <= ZERO:
        return ZERO
    denominator = recent_volume + amount + depth
    if denominator <= ZERO:
        return max_impact
    return min(max_impact, sensitivity * amount / denominator)


def clamp_rate(rate: Decimal, base_rate: Decimal, max_deviation: Decimal) -> Decimal:
    """Keep ``rate`` within +/- ``max_deviation`` of ``base_rate``."""
    lower = base_rate * (ONE - max_deviation)
    upper = base_rate * (ONE + max_deviation)
    return max(lower, min(upper, rate))
