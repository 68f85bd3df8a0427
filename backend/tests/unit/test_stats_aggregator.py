"""
Unit Tests for the Stats Aggregator
Outcome classification, rolling aggregates, hourly breakdown and the dashboard
"""
import pytest
from datetime import date, datetime, timedelta, timezone

from app.domain.exceptions import InvalidArgumentError
from app.domain.models.call_stats import DailyCallStats, StatsIncrement
from app.domain.models.dialer_lead import CallHistoryEntry
from app.domain.services.stats_aggregator import (
    StatsAggregator,
    classify_outcome,
    compute_rolling,
    hourly_breakdown,
    increment_for_outcome,
)


@pytest.fixture
def stats(store, clock):
    return StatsAggregator(store, clock)


class TestClassification:
    """Tests for the contact / conversation classification"""

    @pytest.mark.parametrize("outcome,expected", [
        ("no_answer", (False, False)),
        ("voicemail", (False, False)),
        ("gatekeeper", (False, False)),
        ("wrong_number", (False, False)),
        ("conversation", (True, True)),
        ("demo_booked", (True, True)),
        ("callback", (True, False)),
        ("not_interested", (True, False)),
    ])
    def test_classify(self, outcome, expected):
        """Test every outcome"""
        assert classify_outcome(outcome) == expected

    def test_increment_for_demo(self):
        """Test the increment a booked demo contributes"""
        assert increment_for_outcome("demo_booked") == StatsIncrement(
            total_dials=1, contacts=1, conversations=1, demos_booked=1,
        )

    def test_increment_for_no_answer(self):
        """Test that a no-answer is only a dial"""
        assert increment_for_outcome("no_answer") == StatsIncrement(total_dials=1)


class TestComputeRolling:
    """Tests for rolling aggregation"""

    def test_only_days_with_data(self):
        """Test a 7-day window holding 3 rows"""
        rows = [
            DailyCallStats(call_date=date(2026, 3, 4), total_dials=100, contacts=20, conversations=10, demos_booked=2, deals_closed=1),
            DailyCallStats(call_date=date(2026, 3, 2), total_dials=80, contacts=10, conversations=5, demos_booked=1),
            DailyCallStats(call_date=date(2026, 2, 27), total_dials=60, contacts=10, conversations=5, demos_booked=1, deals_closed=1),
        ]

        rolling = compute_rolling(rows)

        assert rolling.days_with_data == 3
        assert rolling.total_dials == 240
        assert rolling.avg_dials == 80
        assert rolling.avg_contacts == 13
        assert rolling.avg_demos == 1.3
        assert rolling.contact_rate == pytest.approx(40 / 240 * 100)
        assert rolling.conversation_rate == pytest.approx(50.0)
        assert rolling.demo_rate == pytest.approx(20.0)
        assert rolling.close_rate == pytest.approx(50.0)

    def test_zero_conversations_gives_zero_demo_rate(self):
        """Test that rates never divide by zero"""
        rows = [DailyCallStats(call_date=date(2026, 3, 4), total_dials=30, contacts=0, conversations=0)]

        rolling = compute_rolling(rows)

        assert rolling.demo_rate == 0
        assert rolling.conversation_rate == 0
        assert rolling.close_rate == 0

    def test_averages_round_half_up(self):
        """Test that exact halves round up"""
        rows = [
            DailyCallStats(call_date=date(2026, 3, 4), total_dials=3, contacts=1, conversations=2, demos_booked=1),
            DailyCallStats(call_date=date(2026, 3, 3), total_dials=2, contacts=0, conversations=1),
            DailyCallStats(call_date=date(2026, 3, 2), total_dials=3, contacts=1, conversations=1),
            DailyCallStats(call_date=date(2026, 3, 1), total_dials=2, contacts=0, conversations=1),
        ]

        rolling = compute_rolling(rows)

        assert rolling.avg_dials == 3
        assert rolling.avg_contacts == 1
        assert rolling.avg_conversations == 1
        assert rolling.avg_demos == 0.3

    def test_no_rows(self):
        """Test the empty window"""
        rolling = compute_rolling([])

        assert rolling.days_with_data == 0
        assert rolling.contact_rate == 0


class TestHourlyBreakdown:
    """Tests for hourly bucketing"""

    def test_buckets_by_utc_hour(self):
        """Test dials, contacts and rate per hour"""
        def entry(hour, minute, outcome):
            return CallHistoryEntry(
                lead_id="l", attempt_number=1, outcome=outcome,
                created_at=datetime(2026, 3, 4, hour, minute, tzinfo=timezone.utc),
            )

        history = [
            entry(15, 1, "no_answer"),
            entry(15, 20, "conversation"),
            entry(14, 59, "voicemail"),
            entry(15, 45, "callback"),
            entry(15, 50, "voicemail"),
        ]

        buckets = hourly_breakdown(history)

        assert [b.hour for b in buckets] == [14, 15]
        assert (buckets[0].dials, buckets[0].contacts, buckets[0].contact_rate) == (1, 0, 0)
        assert (buckets[1].dials, buckets[1].contacts, buckets[1].contact_rate) == (4, 2, 50.0)


class TestStatsAggregator:
    """Tests for the store-backed aggregator"""

    @pytest.mark.asyncio
    async def test_adjust_adds_manual_counters(self, stats, store, now):
        """Test demos held, deals closed and hours dialed increments"""
        await stats.adjust(demos_held=1, hours_dialed=1.5)
        row = await stats.adjust(demos_held=1, deals_closed=1, hours_dialed=0.5)

        assert row.call_date == now.date()
        assert row.demos_held == 2
        assert row.deals_closed == 1
        assert row.hours_dialed == pytest.approx(2.0)
        assert row.total_dials == 0

    @pytest.mark.asyncio
    async def test_adjust_rejects_negative(self, stats):
        """Test that counters are never decremented"""
        with pytest.raises(InvalidArgumentError):
            await stats.adjust(deals_closed=-1)

    @pytest.mark.asyncio
    async def test_rolling_window_excludes_older_rows(self, stats, store, now):
        """Test that only the last N calendar dates count"""
        today = now.date()
        await store.increment_daily_stats(today, StatsIncrement(total_dials=10, contacts=5))
        await store.increment_daily_stats(today - timedelta(days=6), StatsIncrement(total_dials=20, contacts=5))
        await store.increment_daily_stats(today - timedelta(days=7), StatsIncrement(total_dials=999))

        rolling = await stats.rolling(7)

        assert rolling.days_with_data == 2
        assert rolling.total_dials == 30
        assert rolling.contact_rate == pytest.approx(10 / 30 * 100)

    @pytest.mark.asyncio
    async def test_list_daily_newest_first(self, stats, store, now):
        """Test listing order and range"""
        today = now.date()
        for offset in (3, 0, 1):
            await store.increment_daily_stats(today - timedelta(days=offset), StatsIncrement(total_dials=1))

        rows = await stats.list_daily(from_date=today - timedelta(days=1))

        assert [r.call_date for r in rows] == [today, today - timedelta(days=1)]

    @pytest.mark.asyncio
    async def test_dashboard(self, stats, store, settings, clock, make_lead, now):
        """Test the dashboard payload after a few dispositions"""
        from app.domain.services.disposition_engine import DispositionEngine

        engine = DispositionEngine(store, settings=settings, clock=clock)
        for outcome in ["no_answer", "conversation", "callback"]:
            lead = await store.seed_lead(make_lead())
            await engine.record_disposition(lead.id, outcome)
        await store.increment_daily_stats(now.date() - timedelta(days=10), StatsIncrement(total_dials=40, contacts=4))

        dashboard = await stats.dashboard()

        assert dashboard.today.total_dials == 3
        assert dashboard.today.contacts == 2
        assert dashboard.today.conversations == 1
        assert dashboard.rolling7.days_with_data == 1
        assert dashboard.rolling30.days_with_data == 2
        assert dashboard.rolling30.total_dials == 43
        assert [r.call_date for r in dashboard.daily_history] == [now.date(), now.date() - timedelta(days=10)]
        assert len(dashboard.hourly_breakdown) == 1
        assert dashboard.hourly_breakdown[0].hour == 19
        assert dashboard.hourly_breakdown[0].dials == 3

    @pytest.mark.asyncio
    async def test_dashboard_without_data(self, stats):
        """Test zeros when nothing was dialed"""
        dashboard = await stats.dashboard()

        assert dashboard.today.total_dials == 0
        assert dashboard.rolling7.days_with_data == 0
        assert dashboard.daily_history == []
        assert dashboard.hourly_breakdown == []
