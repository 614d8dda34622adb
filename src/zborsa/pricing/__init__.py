"""Token pair pricing -- rate oracle and demand impact curve."""

from zborsa.pricing.oracle import RateOracle, validate_pair

__all__ = ["RateOracle", "validate_pair"]
