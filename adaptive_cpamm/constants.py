"""
Adaptive CPAMM Constants

This module consolidates the protocol constants of the engine and the
environment configuration used by the logging layer. Constants are
organized by category for easy reference and maintenance.
"""
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")


def _env_flag(key: str, default: bool) -> bool:
    """"true"/"false" in any casing; anything else keeps the default."""
    raw = (_config.get(key) or "").strip().casefold()
    if raw in ("true", "false"):
        return raw == "true"
    return default


DEFAULT_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
DEFAULT_LOG_DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'

LOG_LEVEL = _config.get('LOG_LEVEL') or 'INFO'
LOG_FORMAT = _config.get('LOG_FORMAT') or DEFAULT_LOG_FORMAT
LOG_DATE_FORMAT = _config.get('LOG_DATE_FORMAT') or DEFAULT_LOG_DATE_FORMAT
LOG_CONSOLE_HIGHLIGHTING = _env_flag('LOG_CONSOLE_HIGHLIGHTING', True)
LOG_FILE_OUTPUT = _env_flag('LOG_FILE_OUTPUT', False)

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW ARE PART OF THE PRICING MODEL. CHANGING THEM CHANGES EVERY QUOTE
# THE ENGINE PRODUCES; TUNABLE PARAMETERS BELONG IN THE POOL CONFIGURATION INSTEAD.

# ==================================================================================
# FIXED-POINT ARITHMETIC
# ==================================================================================
SCALE = 10 ** 18  # ratios, prices, proxies
BPS_DENOM = 10_000  # basis points
U256_MAX = 2 ** 256 - 1


# ==================================================================================
# DYNAMIC FEE MODEL
# ==================================================================================
# Absolute ceiling for max_fee_bps (10%)
FEE_HARD_CAP_BPS = 1_000

# Depth-scale constant of the shallow-liquidity proxy
DEPTH_SCALE_K = 1_000 * SCALE

DEFAULT_MIN_FEE_BPS = 30
DEFAULT_MAX_FEE_BPS = 120

# Coefficients are bps added per 1.0 (SCALE) of the matching proxy
DEFAULT_BETA_VOL = 1_000
DEFAULT_GAMMA_SLIP = 100
DEFAULT_DELTA_SHALLOW = 10


# ==================================================================================
# ORACLE AND CIRCUIT BREAKER
# ==================================================================================
DEFAULT_EMA_ALPHA = SCALE // 20  # 0.05
DEFAULT_BREAKER_VOL_THRESHOLD = SCALE // 5  # 0.20


