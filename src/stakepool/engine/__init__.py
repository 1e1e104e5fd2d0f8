from stakepool.engine.accounting import RewardAccountingEngine
from stakepool.engine.pool import Deposit, PoolParams, TimeLockedPool
from stakepool.engine.scheduler import DistributionReceiver, EmissionScheduler

__all__ = [
    "Deposit",
    "DistributionReceiver",
    "EmissionScheduler",
    "PoolParams",
    "RewardAccountingEngine",
    "TimeLockedPool",
]
