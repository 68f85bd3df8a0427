"""
Workers Package
Background workers for the power dialer
"""
from app.workers.pool_reset_worker import PoolResetWorker

__all__ = [
    "PoolResetWorker",
]
