"""
Pool Reset Worker
Background worker that rolls the phone number pool counters over

Run as separate process:
    python -m app.workers.pool_reset_worker

At each new hour in the reference timezone it resets calls_this_hour
(cooling numbers return to active); at each new day it resets
calls_today. A Redis SET NX EX lock per period means only one replica
performs each reset.
"""
import asyncio
import logging
import os
import signal
from datetime import datetime
from typing import Callable, Optional

import pytz
import redis.asyncio as redis
from dotenv import load_dotenv
from supabase import create_client

from app.core.config import Settings, get_settings
from app.domain.models.dialer_lead import utcnow
from app.domain.services.number_pool import NumberPoolService
from app.infrastructure.storage.supabase_store import SupabaseDialerStore

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Configure logging for worker
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


class PoolResetWorker:
    """
    Periodic hourly/daily rollover of pool usage counters.

    Architecture:
    - Runs as separate process from FastAPI
    - Connects to the same Redis and Supabase instances
    - Period boundaries follow the reference timezone
    """

    POLL_INTERVAL = 30.0  # Seconds between boundary checks
    MAX_CONSECUTIVE_ERRORS = 10
    LOCK_PREFIX = "dialer:pool-reset"
    HOURLY_LOCK_TTL = 3600
    DAILY_LOCK_TTL = 86400

    def __init__(
        self,
        pool: Optional[NumberPoolService] = None,
        redis_client: Optional[redis.Redis] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self.pool = pool
        self.running = False
        self._redis = redis_client
        self._clock = clock
        self._tz = pytz.timezone(self.settings.reference_timezone)

        self._last_hour_key: Optional[str] = None
        self._last_day_key: Optional[str] = None

        # Stats
        self._hourly_resets = 0
        self._daily_resets = 0

    async def initialize(self) -> None:
        """Initialize connections to Redis and Supabase."""
        logger.info("Initializing Pool Reset Worker...")

        if self.pool is None:
            supabase_url = self.settings.supabase_url or os.getenv("SUPABASE_URL")
            supabase_key = self.settings.supabase_service_key or os.getenv("SUPABASE_SERVICE_KEY")
            if not supabase_url or not supabase_key:
                raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
            store = SupabaseDialerStore(create_client(supabase_url, supabase_key), self.settings)
            self.pool = NumberPoolService(store, self.settings)

        if self._redis is None:
            self._redis = await redis.from_url(self.settings.redis_url, decode_responses=True)

        # The current period is already in progress; first reset happens at the next boundary
        self._last_hour_key, self._last_day_key = self._period_keys(self._clock())

        logger.info("Pool Reset Worker initialized successfully")

    def _period_keys(self, now: datetime) -> tuple:
        local = now.astimezone(self._tz)
        return local.strftime("%Y-%m-%dT%H"), local.strftime("%Y-%m-%d")

    def _lock_key(self, period: str, key: str) -> str:
        return f"{self.LOCK_PREFIX}:{period}:{key}"

    async def _acquire(self, period: str, key: str, ttl: int) -> bool:
        """Claim a period so only one replica resets it."""
        if self._redis is None:
            return True
        acquired = await self._redis.set(self._lock_key(period, key), "1", nx=True, ex=ttl)
        return bool(acquired)

    async def _release(self, period: str, key: str) -> None:
        """Drop a claim whose reset failed so the next tick can retry it."""
        if self._redis is None:
            return
        try:
            await self._redis.delete(self._lock_key(period, key))
        except Exception as e:
            logger.error(f"Failed to release {period} claim {key}: {e}")

    async def _run_reset(self, period: str, key: str, ttl: int, reset) -> Optional[int]:
        """
        Claim the period and run its reset.

        Returns None when another replica holds the claim. A failed reset
        releases the claim and re-raises; the period is then retried.
        """
        if not await self._acquire(period, key, ttl):
            return None
        try:
            return await reset()
        except Exception:
            await self._release(period, key)
            raise

    async def tick(self) -> None:
        """Run any reset whose period boundary has passed."""
        hour_key, day_key = self._period_keys(self._clock())

        if hour_key != self._last_hour_key:
            count = await self._run_reset("hourly", hour_key, self.HOURLY_LOCK_TTL, self.pool.reset_hourly)
            if count is not None:
                self._hourly_resets += 1
                logger.info(f"Hourly rollover {hour_key}: {count} numbers reset")
            else:
                logger.debug(f"Hourly rollover {hour_key} already claimed by another worker")
            self._last_hour_key = hour_key

        if day_key != self._last_day_key:
            count = await self._run_reset("daily", day_key, self.DAILY_LOCK_TTL, self.pool.reset_daily)
            if count is not None:
                self._daily_resets += 1
                logger.info(f"Daily rollover {day_key}: {count} numbers reset")
            else:
                logger.debug(f"Daily rollover {day_key} already claimed by another worker")
            self._last_day_key = day_key

    async def run(self) -> None:
        """Main worker loop."""
        await self.initialize()
        self.running = True
        consecutive_errors = 0

        logger.info("Pool Reset Worker started")

        while self.running:
            try:
                await self.tick()
                consecutive_errors = 0
                await asyncio.sleep(self.POLL_INTERVAL)

            except asyncio.CancelledError:
                logger.info("Worker received cancellation signal")
                break

            except Exception as e:
                consecutive_errors += 1
                logger.error(f"Worker error ({consecutive_errors}): {e}", exc_info=True)

                if consecutive_errors >= self.MAX_CONSECUTIVE_ERRORS:
                    logger.critical("Too many consecutive errors, stopping worker")
                    break

                await asyncio.sleep(min(5 * consecutive_errors, 60))

        await self.shutdown()

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        logger.info("Shutting down Pool Reset Worker...")
        self.running = False

        if self._redis:
            await self._redis.close()
            self._redis = None

        logger.info(
            f"Pool Reset Worker shutdown complete. "
            f"Hourly resets: {self._hourly_resets}, Daily resets: {self._daily_resets}"
        )

    def get_stats(self) -> dict:
        """Get worker statistics."""
        return {
            "running": self.running,
            "hourly_resets": self._hourly_resets,
            "daily_resets": self._daily_resets,
            "last_hour": self._last_hour_key,
            "last_day": self._last_day_key,
        }


async def main():
    """Entry point for running the pool reset worker as separate process."""
    worker = PoolResetWorker()

    # Handle shutdown signals
    loop = asyncio.get_event_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        worker.running = False

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await worker.run()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
