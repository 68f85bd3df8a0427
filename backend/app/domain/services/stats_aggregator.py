"""
Stats Aggregator
Daily call counters: the increment contract and the read-side rollups
"""
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from app.domain.exceptions import InvalidArgumentError
from app.domain.interfaces.dialer_store import DialerStore
from app.domain.models.call_stats import (
    CallDashboard,
    DailyCallStats,
    HourlyBreakdown,
    RollingStats,
    StatsIncrement,
    TodayStats,
)
from app.domain.models.dialer_lead import (
    CONTACT_OUTCOMES,
    CONVERSATION_OUTCOMES,
    CallHistoryEntry,
    DialerOutcome,
    utcnow,
)

logger = logging.getLogger(__name__)


def classify_outcome(outcome: str) -> Tuple[bool, bool]:
    """
    Returns:
        (contact_made, is_conversation)
    """
    return outcome in CONTACT_OUTCOMES, outcome in CONVERSATION_OUTCOMES


def increment_for_outcome(outcome: str) -> StatsIncrement:
    """The daily-stats increment one disposition contributes."""
    contact_made, is_conversation = classify_outcome(outcome)
    return StatsIncrement(
        total_dials=1,
        contacts=1 if contact_made else 0,
        conversations=1 if is_conversation else 0,
        demos_booked=1 if outcome == DialerOutcome.DEMO_BOOKED else 0,
    )


def _round_half_up(value: float, places: int = 0):
    """Halves round away from zero, 2.5 -> 3 and 0.25 -> 0.3."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def _rate(numerator: float, denominator: float) -> float:
    """Percentage, 0 when the denominator is 0."""
    if not denominator:
        return 0.0
    return (numerator / denominator) * 100


def compute_rolling(stats: Iterable[DailyCallStats]) -> RollingStats:
    """
    Aggregate the rows that exist in a window.

    Days without a row are not padded with zeros: averages divide by
    days_with_data.
    """
    rows = list(stats)
    if not rows:
        return RollingStats()

    total_dials = sum(d.total_dials for d in rows)
    total_contacts = sum(d.contacts for d in rows)
    total_conversations = sum(d.conversations for d in rows)
    total_demos = sum(d.demos_booked for d in rows)
    total_deals = sum(d.deals_closed for d in rows)
    days = len(rows)

    return RollingStats(
        avg_dials=_round_half_up(total_dials / days),
        avg_contacts=_round_half_up(total_contacts / days),
        avg_conversations=_round_half_up(total_conversations / days),
        avg_demos=_round_half_up(total_demos / days, 1),
        total_dials=total_dials,
        total_contacts=total_contacts,
        total_conversations=total_conversations,
        total_demos=total_demos,
        total_deals=total_deals,
        days_with_data=days,
        contact_rate=_rate(total_contacts, total_dials),
        conversation_rate=_rate(total_conversations, total_contacts),
        demo_rate=_rate(total_demos, total_conversations),
        close_rate=_rate(total_deals, total_demos),
    )


def hourly_breakdown(history: Iterable[CallHistoryEntry]) -> List[HourlyBreakdown]:
    """Bucket history entries by UTC hour of day, with a per-hour contact rate."""
    buckets: Dict[int, Dict[str, int]] = {}

    for entry in history:
        hour = entry.created_at.astimezone(timezone.utc).hour
        bucket = buckets.setdefault(hour, {"dials": 0, "contacts": 0})
        bucket["dials"] += 1
        if entry.outcome in CONTACT_OUTCOMES:
            bucket["contacts"] += 1

    return [
        HourlyBreakdown(
            hour=hour,
            dials=data["dials"],
            contacts=data["contacts"],
            contact_rate=_rate(data["contacts"], data["dials"]),
        )
        for hour, data in sorted(buckets.items())
    ]


class StatsAggregator:
    """Writes and reads the per-date call counters"""

    def __init__(self, store: DialerStore, clock: Callable[[], datetime] = utcnow):
        self._store = store
        self._clock = clock

    def today(self) -> date:
        return self._clock().astimezone(timezone.utc).date()

    async def adjust(
        self,
        call_date: Optional[date] = None,
        demos_held: int = 0,
        deals_closed: int = 0,
        hours_dialed: float = 0.0,
    ) -> DailyCallStats:
        """
        Manual increments for the counters dispositions never touch.

        Raises:
            InvalidArgumentError: negative amount (counters never go down)
        """
        if demos_held < 0 or deals_closed < 0 or hours_dialed < 0:
            raise InvalidArgumentError("Stat adjustments must be non-negative")

        increment = StatsIncrement(
            demos_held=demos_held,
            deals_closed=deals_closed,
            hours_dialed=hours_dialed,
        )
        target = call_date or self.today()
        return await self._store.increment_daily_stats(target, increment)

    async def list_daily(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> List[DailyCallStats]:
        return await self._store.list_daily_stats(from_date, to_date)

    async def rolling(self, days: int, end: Optional[date] = None) -> RollingStats:
        """Rolling aggregate over the last `days` calendar dates ending `end`."""
        end = end or self.today()
        start = end - timedelta(days=days - 1)
        rows = await self._store.list_daily_stats(start, end)
        return compute_rolling(rows)

    async def dashboard(self) -> CallDashboard:
        today = self.today()

        today_row = await self._store.get_daily_stats(today)
        history30 = await self._store.list_daily_stats(today - timedelta(days=29), today)
        history7 = [row for row in history30 if row.call_date >= today - timedelta(days=6)]
        today_calls = await self._store.list_history_on(today)

        today_stats = TodayStats(**today_row.model_dump(exclude={"call_date", "notes"})) if today_row else TodayStats()

        return CallDashboard(
            today=today_stats,
            rolling7=compute_rolling(history7),
            rolling30=compute_rolling(history30),
            daily_history=history30,
            hourly_breakdown=hourly_breakdown(today_calls),
        )
