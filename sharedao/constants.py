"""
ShareDAO Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# ASSET PARAMETERS
# ==================================================================================
# Fractional digits of the deposited asset. Shares are 1:1 with base units.
ASSET_DECIMALS = 18
ASSET_UNIT = 10 ** ASSET_DECIMALS

# Shares and tallies are unsigned 256-bit quantities; anything above fails closed.
MAX_UINT256 = 2 ** 256 - 1


# ==================================================================================
# GOVERNANCE PARAMETERS
# ==================================================================================
GOVERNANCE_MIN_SHARES_TO_CREATE_PROPOSAL = 100 * ASSET_UNIT
GOVERNANCE_VOTING_PERIOD_SECONDS = 7 * 86400  # 7 days

GOVERNANCE_SIDE_SUPPORT = 0
GOVERNANCE_SIDE_REJECT = 1

GOVERNANCE_STATUS_UNDECIDED = 0
GOVERNANCE_STATUS_APPROVED = 1
GOVERNANCE_STATUS_REJECTED = 2

# Proposal keys are opaque; 32 bytes when derived with proposal_key()
PROPOSAL_KEY_SIZE = 32
PROPOSAL_KEY_DOMAIN = b"sharedao-proposal-v1"

# The null principal can never own the DAO
ZERO_ADDRESS = "0x" + "00" * 20


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
