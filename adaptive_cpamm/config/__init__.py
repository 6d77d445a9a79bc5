"""
Adaptive CPAMM Configuration

Loads pool parameters from config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    AMMConfig,
    PoolSectionConfig,
    FeeSectionConfig,
    OracleSectionConfig,
    BreakerSectionConfig,
    load_config,
    parse_fraction,
)

__all__ = [
    "AMMConfig",
    "PoolSectionConfig",
    "FeeSectionConfig",
    "OracleSectionConfig",
    "BreakerSectionConfig",
    "load_config",
    "parse_fraction",
]
