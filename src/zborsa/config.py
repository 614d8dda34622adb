"""Configuration system using pydantic-settings with environment variable loading."""

from dataclasses import dataclass
from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from zborsa.models import StakingOption, TokenPair


# (symbol, OBX->symbol rate, symbol->OBX rate)
_DEFAULT_RATES = [
    ("STX", "2.4", "0.4"),
    ("VIZ", "2.2", "0.45"),
    ("LOG", "2.0", "0.5"),
    ("CRE", "1.8", "0.55"),
    ("ANA", "1.6", "0.6"),
    ("SYN", "1.4", "0.7"),
]


def _default_token_pairs() -> list[TokenPair]:
    pairs: list[TokenPair] = []
    for symbol, out_rate, back_rate in _DEFAULT_RATES:
        pairs.append(
            TokenPair("OBX", symbol, Decimal(out_rate), Decimal("0.01"),
                      Decimal("0.1"), Decimal("100"))
        )
        pairs.append(
            TokenPair(symbol, "OBX", Decimal(back_rate), Decimal("0.02"),
                      Decimal("0.5"), Decimal("200"))
        )
    return pairs


def _default_staking_options() -> list[StakingOption]:
    return [
        StakingOption("OBX", "STX", Decimal("0.08"), 7, Decimal("5"), Decimal("100")),
        StakingOption("OBX", "VIZ", Decimal("0.07"), 7, Decimal("5"), Decimal("100")),
        StakingOption("OBX", "STX", Decimal("0.15"), 30, Decimal("10"), Decimal("200")),
        StakingOption("OBX", "VIZ", Decimal("0.13"), 30, Decimal("10"), Decimal("200")),
    ]


class LedgerSettings(BaseSettings):
    """Ledger store (SQLite) settings."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_")

    db_path: str = "data/ledger.db"
    busy_timeout_ms: int = 5000


class SwapSettings(BaseSettings):
    """Swap gating and rate-limit parameters."""

    model_config = SettingsConfigDict(env_prefix="SWAP_")

    global_swap_enabled: bool = True
    min_eligibility_score: Decimal = Decimal("5")
    daily_swap_limit: int = 1000
    daily_swap_limit_per_user: int = 50
    window_hours: int = 24  # rolling window, not a calendar day
    history_default_limit: int = 10


class StakingSettings(BaseSettings):
    """Staking feature flag and the configured option menu."""

    model_config = SettingsConfigDict(env_prefix="STAKING_")

    enabled: bool = True
    options: list[StakingOption] = Field(default_factory=_default_staking_options)


class PricingSettings(BaseSettings):
    """Rate oracle parameters.

    Each committed swap lowers the traded pair's rate by a bounded impact;
    the deviation from the configured base rate decays with a half-life.
    """

    model_config = SettingsConfigDict(env_prefix="PRICING_")

    pairs: list[TokenPair] = Field(default_factory=_default_token_pairs)
    impact_sensitivity: Decimal = Decimal("0.05")
    depth: Decimal = Decimal("1000")  # virtual liquidity damping small pairs
    max_impact_per_swap: Decimal = Decimal("0.01")  # 1% ceiling per call
    max_deviation: Decimal = Decimal("0.25")  # +/-25% around base rate
    reversion_half_life_hours: float = 6.0


@dataclass
class RuntimeFlags:
    """Mutable runtime overlay. Non-None fields override BaseSettings values.

    Used by administrators to switch features or limits without restarting.
    """

    global_swap_enabled: bool | None = None
    staking_enabled: bool | None = None
    daily_swap_limit: int | None = None
    daily_swap_limit_per_user: int | None = None
    staking_options: list[StakingOption] | None = None


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    ledger: LedgerSettings = LedgerSettings()
    swap: SwapSettings = SwapSettings()
    staking: StakingSettings = StakingSettings()
    pricing: PricingSettings = PricingSettings()
