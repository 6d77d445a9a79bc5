"""
Adaptive CPAMM TOML Configuration Loader

Loads pool parameters from a TOML file with environment variable
overrides (dataclass + from_dict + apply_env + from_file).

Environment variable mapping:
    [pool]    authority         -> CPAMM_AUTHORITY
    [fees]    min_fee_bps       -> CPAMM_MIN_FEE_BPS
    [oracle]  ema_alpha         -> CPAMM_EMA_ALPHA
    [breaker] vol_threshold     -> CPAMM_BREAKER_VOL_THRESHOLD
    ...

Fractions (alpha, breaker threshold) may be given either as fixed-point
integers or as decimal strings such as "0.05", which are scaled by 1e18.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional, Union

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    DEFAULT_BETA_VOL,
    DEFAULT_BREAKER_VOL_THRESHOLD,
    DEFAULT_DELTA_SHALLOW,
    DEFAULT_EMA_ALPHA,
    DEFAULT_GAMMA_SLIP,
    DEFAULT_MAX_FEE_BPS,
    DEFAULT_MIN_FEE_BPS,
    SCALE,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def parse_fraction(value: Union[int, str, float], name: str) -> int:
    """
    Fixed-point integer from an int (already scaled) or a decimal.

    Strings are always decimal fractions, so "1" and "1.0" both mean SCALE.
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got bool")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        dec = Decimal(text)
    except InvalidOperation as e:
        raise ConfigurationError(f"{name} is not a number: {value!r}") from e
    if not dec.is_finite():
        raise ConfigurationError(f"{name} must be finite: {value!r}")
    if dec < 0:
        raise ConfigurationError(f"{name} must be non-negative: {value!r}")
    return int(dec * SCALE)


def parse_int(value: Union[int, str], name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got bool")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer: {value!r}") from e


# ---------------------------------------------------------------------------
# Section dataclasses, one per [section] of config.example.toml
# ---------------------------------------------------------------------------

@dataclass
class PoolSectionConfig:
    """[pool] section."""
    address: str = "pool"
    authority: str = "admin"
    token0: str = "token0"
    token1: str = "token1"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolSectionConfig":
        return cls(
            address=data.get("address", "pool"),
            authority=data.get("authority", "admin"),
            token0=data.get("token0", "token0"),
            token1=data.get("token1", "token1"),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("CPAMM_POOL_ADDRESS"):
            self.address = v
        if v := os.environ.get("CPAMM_AUTHORITY"):
            self.authority = v
        if v := os.environ.get("CPAMM_TOKEN0"):
            self.token0 = v
        if v := os.environ.get("CPAMM_TOKEN1"):
            self.token1 = v


@dataclass
class FeeSectionConfig:
    """[fees] section."""
    min_fee_bps: int = DEFAULT_MIN_FEE_BPS
    max_fee_bps: int = DEFAULT_MAX_FEE_BPS
    beta_vol: int = DEFAULT_BETA_VOL
    gamma_slip: int = DEFAULT_GAMMA_SLIP
    delta_shallow: int = DEFAULT_DELTA_SHALLOW

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeeSectionConfig":
        return cls(
            min_fee_bps=parse_int(data.get("min_fee_bps", DEFAULT_MIN_FEE_BPS), "min_fee_bps"),
            max_fee_bps=parse_int(data.get("max_fee_bps", DEFAULT_MAX_FEE_BPS), "max_fee_bps"),
            beta_vol=parse_int(data.get("beta_vol", DEFAULT_BETA_VOL), "beta_vol"),
            gamma_slip=parse_int(data.get("gamma_slip", DEFAULT_GAMMA_SLIP), "gamma_slip"),
            delta_shallow=parse_int(data.get("delta_shallow", DEFAULT_DELTA_SHALLOW), "delta_shallow"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("CPAMM_MIN_FEE_BPS"):
            self.min_fee_bps = parse_int(v, "CPAMM_MIN_FEE_BPS")
        if v := os.environ.get("CPAMM_MAX_FEE_BPS"):
            self.max_fee_bps = parse_int(v, "CPAMM_MAX_FEE_BPS")
        if v := os.environ.get("CPAMM_BETA_VOL"):
            self.beta_vol = parse_int(v, "CPAMM_BETA_VOL")
        if v := os.environ.get("CPAMM_GAMMA_SLIP"):
            self.gamma_slip = parse_int(v, "CPAMM_GAMMA_SLIP")
        if v := os.environ.get("CPAMM_DELTA_SHALLOW"):
            self.delta_shallow = parse_int(v, "CPAMM_DELTA_SHALLOW")


@dataclass
class OracleSectionConfig:
    """[oracle] section."""
    ema_alpha: int = DEFAULT_EMA_ALPHA

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OracleSectionConfig":
        return cls(ema_alpha=parse_fraction(data.get("ema_alpha", DEFAULT_EMA_ALPHA), "ema_alpha"))

    def apply_env(self) -> None:
        if v := os.environ.get("CPAMM_EMA_ALPHA"):
            self.ema_alpha = parse_fraction(v, "CPAMM_EMA_ALPHA")


@dataclass
class BreakerSectionConfig:
    """[breaker] section."""
    vol_threshold: int = DEFAULT_BREAKER_VOL_THRESHOLD

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BreakerSectionConfig":
        return cls(
            vol_threshold=parse_fraction(
                data.get("vol_threshold", DEFAULT_BREAKER_VOL_THRESHOLD), "vol_threshold"
            )
        )

    def apply_env(self) -> None:
        if v := os.environ.get("CPAMM_BREAKER_VOL_THRESHOLD"):
            self.vol_threshold = parse_fraction(v, "CPAMM_BREAKER_VOL_THRESHOLD")


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

@dataclass
class AMMConfig:
    """Aggregated configuration of one pool."""
    pool: PoolSectionConfig = field(default_factory=PoolSectionConfig)
    fees: FeeSectionConfig = field(default_factory=FeeSectionConfig)
    oracle: OracleSectionConfig = field(default_factory=OracleSectionConfig)
    breaker: BreakerSectionConfig = field(default_factory=BreakerSectionConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AMMConfig":
        return cls(
            pool=PoolSectionConfig.from_dict(data.get("pool", {})),
            fees=FeeSectionConfig.from_dict(data.get("fees", {})),
            oracle=OracleSectionConfig.from_dict(data.get("oracle", {})),
            breaker=BreakerSectionConfig.from_dict(data.get("breaker", {})),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "AMMConfig":
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        try:
            with open(path, "rb") as f:
                data = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e
        return cls.from_dict(data)

    def apply_env(self) -> None:
        self.pool.apply_env()
        self.fees.apply_env()
        self.oracle.apply_env()
        self.breaker.apply_env()


def load_config(path: Optional[Union[str, Path]] = None) -> AMMConfig:
    """
    Load the pool configuration.

    Resolution order: defaults, then the TOML file (explicit `path`, else
    $CPAMM_CONFIG, else ./config.toml if present), then environment
    overrides.
    """
    if path is None:
        path = os.environ.get("CPAMM_CONFIG")
        if path is None and Path("config.toml").exists():
            path = "config.toml"

    if path is not None:
        config = AMMConfig.from_file(path)
        logger.info("Loaded pool configuration from %s", path)
    else:
        config = AMMConfig()

    config.apply_env()
    return config
