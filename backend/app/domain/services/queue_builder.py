"""
Dialer Queue Builder
Read-side assembly of who to call next

Order of the queue:
1. Callbacks that are due (promised times, most overdue first)
2. Queued leads in the region currently in business hours,
   fewest attempts first, then oldest

Every sub-query degrades to empty/zero on failure so the dialer UI can
still render a "no leads" state. Nothing here writes; two callers may be
shown the same lead and that is tolerated.
"""
import asyncio
import logging
from datetime import datetime, time, timezone
from typing import Any, Awaitable, Callable, List, Optional

from app.core.config import Settings, get_settings
from app.domain.exceptions import InvalidArgumentError
from app.domain.interfaces.dialer_store import DialerStore
from app.domain.models.calling_schedule import ALL_REGIONS, CallingSchedule
from app.domain.models.dialer_lead import (
    CALLABLE_STATUSES,
    REGION_BREAKDOWN_STATUSES,
    DialerLead,
    utcnow,
)
from app.domain.models.dialer_queue import QueueSnapshot
from app.domain.models.phone_number import PoolNumberStatus
from app.domain.services.number_pool import select_caller_number

logger = logging.getLogger(__name__)


def merge_queue(callbacks: List[DialerLead], queued: List[DialerLead]) -> List[DialerLead]:
    """Callbacks first, then queued leads not already present."""
    seen = {lead.id for lead in callbacks}
    merged = list(callbacks)
    for lead in queued:
        if lead.id not in seen:
            seen.add(lead.id)
            merged.append(lead)
    return merged


def normalize_region(region: Optional[str]) -> Optional[str]:
    """Validate an explicit region override."""
    if not region:
        return None
    value = region.strip().upper()
    if value not in ALL_REGIONS:
        raise InvalidArgumentError(f"Unknown timezone region: {region}. Use one of {', '.join(ALL_REGIONS)}")
    return value


class QueueBuilder:
    """Builds the power-dialer queue for the current moment"""

    def __init__(
        self,
        store: DialerStore,
        schedule: Optional[CallingSchedule] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self._schedule = schedule or CallingSchedule(reference_timezone=self._settings.reference_timezone)
        self._clock = clock

    async def get_queue(
        self,
        limit: Optional[int] = None,
        timezone_override: Optional[str] = None,
    ) -> QueueSnapshot:
        """
        Build the queue snapshot.

        Args:
            limit: Max regular-queue leads (callbacks are capped separately)
            timezone_override: Force a region instead of the scheduled one

        Raises:
            InvalidArgumentError: override is not a known region
        """
        override = normalize_region(timezone_override)
        limit = self._clamp_limit(limit)

        now = self._clock()
        today = now.astimezone(timezone.utc).date()
        end_of_day = datetime.combine(today, time.max, tzinfo=timezone.utc)

        block = self._schedule.block_for_hour(self._schedule.reference_hour(now))
        current_region = override or (block.region if block else None)

        callbacks = await self._safe(
            "due callbacks",
            self._store.list_due_callbacks(now, self._settings.callback_batch_size),
            [],
        )
        queued = await self._safe(
            "regular queue",
            self._store.list_queued_leads(current_region, limit),
            [],
        )
        leads = merge_queue(callbacks, queued)

        completed_today = await self._safe("completed today", self._store.count_history_on(today), 0)
        total_today = await self._safe("callable total", self._store.count_leads(CALLABLE_STATUSES), 0)
        callbacks_due = await self._safe(
            "callbacks due today",
            self._store.list_due_callbacks(end_of_day),
            [],
        )

        # Independent of the region filter: always all four regions
        counts = await asyncio.gather(*[
            self._safe(
                f"{region} breakdown",
                self._store.count_leads(REGION_BREAKDOWN_STATUSES, region),
                0,
            )
            for region in ALL_REGIONS
        ])
        breakdown = dict(zip(ALL_REGIONS, counts))

        numbers = await self._safe(
            "number pool",
            self._store.list_numbers(status=PoolNumberStatus.ACTIVE.value),
            [],
        )
        selected = select_caller_number(numbers, leads[0].state if leads else None)
        if numbers and selected is None:
            logger.info("Every active pool number is at its hourly cap")

        return QueueSnapshot(
            leads=leads,
            total_today=total_today,
            completed_today=completed_today,
            current_region=current_region,
            current_hour_block=block.label if block else None,
            callbacks_due=callbacks_due,
            breakdown_by_region=breakdown,
            selected_number=selected,
        )

    def _clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self._settings.default_queue_limit
        return max(1, min(limit, self._settings.max_queue_limit))

    async def _safe(self, what: str, query: Awaitable[Any], default: Any) -> Any:
        try:
            return await query
        except Exception as e:
            logger.warning(f"Queue sub-query '{what}' failed, continuing without it: {e}")
            return default
