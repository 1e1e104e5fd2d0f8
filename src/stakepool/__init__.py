"""Time-locked staking pools with a weighted multi-pool emission scheduler."""

__version__ = "0.1.0"
