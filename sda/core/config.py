"""
Auction configuration parameters for SDA.

Defines bidding rules, settlement economics and operational limits.
Values can be overridden through SDA_* environment variables, optionally
loaded from a .env file.
"""

import os
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# =============================================================================
# Constants
# =============================================================================

MAX_BIDDERS = 100               # Unique-participant registry cap
EXTENSION_WINDOW = 600          # Seconds; anti-sniping window and extension step
MIN_INCREMENT_PERCENT = 5       # New total must exceed leader by more than this
COMMISSION_PERCENT = 2          # Deducted from every outbound transfer
DEFAULT_DURATION = 3600         # Seconds from deployment to initial deadline

ENV_PREFIX = "SDA_"


class ConfigError(ValueError):
    """Invalid configuration value."""


class SettlementMode(str, Enum):
    """How close converts balances into transfers."""
    PUSH = "push"   # close sweeps every participant
    PULL = "pull"   # close finalizes; participants withdraw


@dataclass
class AuctionConfig:
    """Auction-wide configuration parameters"""

    # Timing
    duration: int = DEFAULT_DURATION
    extension_window: int = EXTENSION_WINDOW

    # Bidding rules
    min_increment_percent: int = MIN_INCREMENT_PERCENT
    max_bidders: int = MAX_BIDDERS

    # Settlement
    commission_percent: int = COMMISSION_PERCENT
    settlement_mode: SettlementMode = SettlementMode.PUSH

    # Paths
    data_dir: Path = Path("~/.sda")
    log_dir: Path = Path("~/.sda/logs")

    def __post_init__(self):
        self.settlement_mode = SettlementMode(self.settlement_mode)
        self.data_dir = Path(self.data_dir).expanduser()
        self.log_dir = Path(self.log_dir).expanduser()
        self.validate()

    def validate(self) -> None:
        """Raise ConfigError on values the engine cannot run with."""
        for name in ("duration", "extension_window", "max_bidders"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")

        for name in ("min_increment_percent", "commission_percent"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < 100:
                raise ConfigError(f"{name} must be an integer in [0, 100), got {value!r}")

    def to_dict(self) -> dict:
        return {
            "duration": self.duration,
            "extension_window": self.extension_window,
            "min_increment_percent": self.min_increment_percent,
            "max_bidders": self.max_bidders,
            "commission_percent": self.commission_percent,
            "settlement_mode": self.settlement_mode.value,
            "data_dir": str(self.data_dir),
            "log_dir": str(self.log_dir),
        }


_INT_FIELDS = {
    "duration",
    "extension_window",
    "min_increment_percent",
    "max_bidders",
    "commission_percent",
}


def load_config(env_file: Optional[str] = None, **overrides) -> AuctionConfig:
    """
    Load configuration from the environment (and optionally a .env file).

    Precedence: explicit overrides > SDA_* environment variables > defaults.

    Args:
        env_file: Optional path to a .env file
        **overrides: Field values that win over the environment

    Returns:
        AuctionConfig instance

    Raises:
        ConfigError: If a value cannot be parsed or fails validation
    """
    if env_file:
        load_dotenv(env_file, override=False)

    values = {}
    for f in fields(AuctionConfig):
        raw = os.environ.get(ENV_PREFIX + f.name.upper())
        if raw is None:
            continue
        if f.name in _INT_FIELDS:
            try:
                values[f.name] = int(raw)
            except ValueError:
                raise ConfigError(f"{ENV_PREFIX}{f.name.upper()} must be an integer, got {raw!r}") from None
        elif f.name == "settlement_mode":
            try:
                values[f.name] = SettlementMode(raw.strip().lower())
            except ValueError:
                raise ConfigError(f"{ENV_PREFIX}SETTLEMENT_MODE must be 'push' or 'pull', got {raw!r}") from None
        else:
            values[f.name] = Path(raw)

    values.update(overrides)
    return AuctionConfig(**values)
