"""
Public policy parameters for the pooled raffle.

These values define the rules every game is played under.
Changing them changes how value is weighted and paid out and MUST be
publicly announced.
"""

# All USD values are 18-decimal fixed point
USD_DECIMALS = 18
USD_UNIT = 10**USD_DECIMALS

# A price quote older than this (seconds) is unusable
PRICE_FRESHNESS_WINDOW_S = 60 * 60

# Fee parameters are expressed in basis points
BPS_DENOMINATOR = 10_000
MAX_TOTAL_FEE_BPS = 2_000

# Minimum swap output, as a share of the input amount (payout-token units)
SLIPPAGE_FLOOR_BPS = 9_500

# Randomness requests always ask for a single word
NUM_WORDS = 1

# Zero is reserved as "not yet fulfilled"
RANDOM_NOT_FULFILLED = 0

# Defaults used when the environment does not override them
DEFAULT_GAME_DURATION_S = 24 * 60 * 60
DEFAULT_MAX_PARTICIPANTS = 500
DEFAULT_MIN_DEPOSIT_USD = 1 * USD_UNIT  # $1.00
DEFAULT_PLATFORM_FEE_BPS = 500
DEFAULT_FOUNDER_FEE_BPS = 500
DEFAULT_SWAP_FEE_TIER = 3_000
DEFAULT_REQUEST_CONFIRMATIONS = 3
DEFAULT_CALLBACK_GAS_LIMIT = 500_000
