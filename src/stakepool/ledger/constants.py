# src/stakepool/ledger/constants.py
from __future__ import annotations

"""Fixed-point and scheduling constants.

All ratios (multiplier bonus, escrow portion, pool weights) are integers
scaled by BASE. Reward points are scaled by POINTS_MULTIPLIER so that the
truncation remainder of a single distribution stays below one base unit.
"""

# Integer widths mirrored from the share/amount arithmetic.
UINT256_MAX: int = 2**256 - 1
INT256_MAX: int = 2**255 - 1
INT256_MIN: int = -(2**255)

# Fixed-point 1.0 for ratios.
BASE_DECIMALS: int = 18
BASE: int = 10**BASE_DECIMALS

# Scale for points-per-share accrual (uint128 max).
POINTS_MULTIPLIER: int = 2**128 - 1

# Lock durations (seconds)
MIN_LOCK_DURATION: int = 10 * 60
ONE_DAY: int = 24 * 60 * 60
ONE_YEAR: int = 365 * ONE_DAY

# Emission scheduler
MAX_POOL_COUNT: int = 10

# Reward transfers at or below this many base units are skipped.
DUST_THRESHOLD: int = 1

# Capability ids consumed by the scheduler.
DEFAULT_ADMIN_ROLE: str = "DEFAULT_ADMIN_ROLE"
GOV_ROLE: str = "GOV_ROLE"
REWARD_DISTRIBUTOR_ROLE: str = "REWARD_DISTRIBUTOR_ROLE"
