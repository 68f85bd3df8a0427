"""
Unit Tests for the Disposition Engine
Transition table, attempt accounting, notes, stats fan-out and pool bookkeeping
"""
import pytest
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

from app.domain.exceptions import InvalidArgumentError, NotFoundError, StaleLeadError
from app.domain.models.dialer_lead import DialerOutcome, LeadStatus
from app.domain.models.phone_number import PoolNumberStatus
from app.domain.services.disposition_engine import (
    DispositionEngine,
    append_note,
    build_note_entry,
    compute_transition,
    format_short_date,
    truncate_note,
)


ALL_OUTCOMES = [o.value for o in DialerOutcome]
RETRY_OUTCOMES = ["no_answer", "voicemail", "gatekeeper", "conversation"]
CLOSING_OUTCOMES = ["demo_booked", "not_interested", "wrong_number"]


@pytest.fixture
def engine(store, settings, clock):
    return DispositionEngine(store, settings=settings, clock=clock, rng=lambda: 0.5)


class TestComputeTransition:
    """Tests for the pure transition table"""

    @pytest.mark.parametrize("outcome", RETRY_OUTCOMES)
    def test_retry_outcomes_archive_at_cap(self, make_lead, now, outcome):
        """Test that the last allowed attempt archives the lead"""
        lead = make_lead(attempt_count=4, max_attempts=5)

        transition = compute_transition(lead, DialerOutcome(outcome), now, rng=lambda: 0.0)

        assert transition.new_status == "archived"

    @pytest.mark.parametrize("outcome", RETRY_OUTCOMES)
    def test_retry_outcomes_requeue_fresh_lead(self, make_lead, now, outcome):
        """Test that a fresh lead goes back to the queue"""
        lead = make_lead(attempt_count=0, max_attempts=5)

        transition = compute_transition(lead, DialerOutcome(outcome), now, rng=lambda: 0.0)

        assert transition.new_status == "queued"

    @pytest.mark.parametrize("jitter", [0.0, 0.25, 0.999])
    def test_no_answer_delay_between_two_and_three_days(self, make_lead, now, jitter):
        """Test the jittered no-contact retry window"""
        lead = make_lead()

        transition = compute_transition(lead, DialerOutcome.NO_ANSWER, now, rng=lambda: jitter)

        delay = transition.next_call_at - now
        assert timedelta(days=2) <= delay < timedelta(days=3)
        assert delay == timedelta(days=2 + jitter)

    def test_conversation_retries_in_three_days(self, make_lead, now):
        """Test that a conversation is followed up three days later"""
        lead = make_lead()

        transition = compute_transition(lead, DialerOutcome.CONVERSATION, now)

        assert transition.next_call_at == now + timedelta(days=3)

    @pytest.mark.parametrize("attempt_count", [0, 2, 4, 7])
    @pytest.mark.parametrize("outcome", CLOSING_OUTCOMES)
    def test_closing_outcomes_complete_and_keep_next_call_at(self, make_lead, now, outcome, attempt_count):
        """Test that closing outcomes complete the lead without rescheduling"""
        previous = now - timedelta(hours=5)
        lead = make_lead(attempt_count=attempt_count, next_call_at=previous)

        transition = compute_transition(lead, DialerOutcome(outcome), now)

        assert transition.new_status == "completed"
        assert transition.next_call_at == previous

    def test_demo_booked_sets_flag_and_date(self, make_lead, now):
        """Test demo flag and caller-supplied demo date"""
        demo = now + timedelta(days=2)

        transition = compute_transition(make_lead(), DialerOutcome.DEMO_BOOKED, now, demo_date=demo)

        assert transition.demo_booked is True
        assert transition.demo_date == demo

    def test_not_interested_and_wrong_number_flags(self, make_lead, now):
        """Test the closing flags"""
        assert compute_transition(make_lead(), DialerOutcome.NOT_INTERESTED, now).not_interested is True
        assert compute_transition(make_lead(), DialerOutcome.WRONG_NUMBER, now).wrong_number is True

    def test_callback_uses_promised_time(self, make_lead, now):
        """Test that an explicit callback time is honoured"""
        promised = now + timedelta(hours=3)

        transition = compute_transition(make_lead(), DialerOutcome.CALLBACK, now, callback_at=promised)

        assert transition.new_status == "callback"
        assert transition.next_call_at == promised

    def test_callback_defaults_to_tomorrow(self, make_lead, now):
        """Test the 24-hour default callback"""
        transition = compute_transition(make_lead(), DialerOutcome.CALLBACK, now)

        assert transition.new_status == "callback"
        assert transition.next_call_at == now + timedelta(days=1)

    def test_callback_ignores_attempt_cap(self, make_lead, now):
        """Test that a promised callback is kept even at the cap"""
        lead = make_lead(attempt_count=4, max_attempts=5)

        transition = compute_transition(lead, DialerOutcome.CALLBACK, now)

        assert transition.new_status == "callback"


class TestNotes:
    """Tests for the notes log helpers"""

    def test_short_date_in_eastern_time(self, now):
        """Test the note timestamp format"""
        assert format_short_date(now, "America/New_York") == "Mar 4, 2:05 PM"

    def test_note_entry_with_and_without_text(self, now):
        """Test both note entry shapes"""
        assert build_note_entry(now, "voicemail", None, "America/New_York") == "[Mar 4, 2:05 PM] voicemail"
        assert build_note_entry(now, "callback", "call after lunch", "America/New_York") == (
            "[Mar 4, 2:05 PM] callback: call after lunch"
        )

    def test_append_never_rewrites(self):
        """Test that previous lines are kept verbatim"""
        assert append_note("", "first") == "first"
        assert append_note("first", "second") == "first\nsecond"

    def test_truncate_note(self):
        """Test that notes are bounded and blanks dropped"""
        assert truncate_note("x" * 600, 500) == "x" * 500
        assert truncate_note("   ", 500) is None
        assert truncate_note(None, 500) is None


class TestRecordDisposition:
    """Tests for DispositionEngine.record_disposition"""

    @pytest.mark.asyncio
    async def test_attempt_count_increments_once_per_event(self, engine, store, make_lead):
        """Test that N events advance attempt_count by exactly N"""
        lead = await store.seed_lead(make_lead(max_attempts=50))
        outcomes = ["no_answer", "callback", "conversation", "voicemail", "gatekeeper", "callback"]

        for outcome in outcomes:
            await engine.record_disposition(lead.id, outcome)

        stored = await store.get_lead(lead.id)
        assert stored.attempt_count == len(outcomes)
        assert [h.attempt_number for h in store.history] == list(range(1, len(outcomes) + 1))

    @pytest.mark.asyncio
    async def test_closing_outcome_still_counts_attempt(self, engine, store, make_lead):
        """Test that terminal outcomes also advance the attempt counter"""
        lead = await store.seed_lead(make_lead(attempt_count=2))

        result = await engine.record_disposition(lead.id, "not_interested")

        assert result.new_status == "completed"
        assert result.attempt_count == 3

    @pytest.mark.asyncio
    async def test_updates_lead_fields_and_notes(self, engine, store, make_lead, now):
        """Test that the lead carries last call data and an appended note"""
        lead = await store.seed_lead(make_lead(notes="[Mar 1, 9:00 AM] no_answer"))

        await engine.record_disposition(lead.id, "callback", notes="  ask for Dana  ")

        stored = await store.get_lead(lead.id)
        assert stored.status == LeadStatus.CALLBACK
        assert stored.last_called_at == now
        assert stored.last_outcome == "callback"
        assert stored.notes == "[Mar 1, 9:00 AM] no_answer\n[Mar 4, 2:05 PM] callback: ask for Dana"

    @pytest.mark.asyncio
    async def test_history_entry_appended(self, engine, store, make_lead, now):
        """Test the immutable history record"""
        lead = await store.seed_lead(make_lead())
        promised = now + timedelta(hours=2)

        await engine.record_disposition(lead.id, "callback", notes="later", callback_at=promised)

        assert len(store.history) == 1
        entry = store.history[0]
        assert entry.lead_id == lead.id
        assert entry.attempt_number == 1
        assert entry.outcome == "callback"
        assert entry.notes == "later"
        assert entry.callback_at == promised
        assert entry.created_at == now

    @pytest.mark.asyncio
    async def test_naive_callback_time_is_utc(self, engine, store, make_lead):
        """Test that an offset-less callback time is treated as UTC"""
        lead = await store.seed_lead(make_lead())

        result = await engine.record_disposition(lead.id, "callback", callback_at=datetime(2026, 3, 5, 15, 0))

        assert result.next_call_at == datetime(2026, 3, 5, 15, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("offset", [timedelta(hours=-3), timedelta(0)])
    async def test_callback_time_must_be_future(self, engine, store, make_lead, now, offset):
        """Test that a callback promised for now or earlier is rejected untouched"""
        lead = await store.seed_lead(make_lead())

        with pytest.raises(InvalidArgumentError):
            await engine.record_disposition(lead.id, "callback", callback_at=now + offset)

        stored = await store.get_lead(lead.id)
        assert stored.attempt_count == 0
        assert store.history == []

    @pytest.mark.asyncio
    async def test_past_callback_time_ignored_for_other_outcomes(self, engine, store, make_lead, now):
        """Test that only callback validates callback_at"""
        lead = await store.seed_lead(make_lead())

        result = await engine.record_disposition(lead.id, "voicemail", callback_at=now - timedelta(days=1))

        assert result.new_status == "queued"
        assert result.next_call_at > now

    @pytest.mark.asyncio
    async def test_stats_fan_out_for_a_day(self, store, settings, make_lead):
        """Test the daily counters after no_answer, conversation and demo_booked"""
        day = datetime(2024, 1, 1, 15, 0, tzinfo=timezone.utc)
        engine = DispositionEngine(store, settings=settings, clock=lambda: day, rng=lambda: 0.1)
        leads = [await store.seed_lead(make_lead()) for _ in range(3)]

        for lead, outcome in zip(leads, ["no_answer", "conversation", "demo_booked"]):
            await engine.record_disposition(lead.id, outcome)

        row = await store.get_daily_stats(date(2024, 1, 1))
        assert row.total_dials == 3
        assert row.contacts == 2
        assert row.conversations == 2
        assert row.demos_booked == 1
        assert row.demos_held == 0

    @pytest.mark.asyncio
    async def test_accepts_enum_outcome(self, engine, store, make_lead):
        """Test that callers may pass the enum directly"""
        lead = await store.seed_lead(make_lead())

        result = await engine.record_disposition(lead.id, DialerOutcome.WRONG_NUMBER)

        assert result.new_status == "completed"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lead_id,outcome", [(None, "no_answer"), ("lead-1", None), ("", "")])
    async def test_missing_arguments(self, engine, lead_id, outcome):
        """Test that lead id and outcome are both required"""
        with pytest.raises(InvalidArgumentError, match="leadId and outcome are required"):
            await engine.record_disposition(lead_id, outcome)

    @pytest.mark.asyncio
    async def test_unknown_outcome(self, engine, store, make_lead):
        """Test that outcomes outside the vocabulary are rejected"""
        lead = await store.seed_lead(make_lead())

        with pytest.raises(InvalidArgumentError, match="Unknown outcome"):
            await engine.record_disposition(lead.id, "hung_up_angry")

        assert (await store.get_lead(lead.id)).attempt_count == 0

    @pytest.mark.asyncio
    async def test_unknown_lead(self, engine):
        """Test that a missing lead is NotFound"""
        with pytest.raises(NotFoundError):
            await engine.record_disposition("nope", "no_answer")


class TestConcurrency:
    """Tests for compare-and-set retries"""

    @pytest.mark.asyncio
    async def test_retries_after_stale_read(self, engine, store, make_lead):
        """Test that a concurrent write causes a re-read, not a lost update"""
        lead = await store.seed_lead(make_lead())
        original_apply = store.apply_disposition
        calls = {"n": 0}

        async def racing_apply(updated, expected_attempt_count, history, call_date, increment):
            calls["n"] += 1
            if calls["n"] == 1:
                # Another caller records a disposition between our read and write
                await original_apply(
                    updated, expected_attempt_count, history, call_date, increment
                )
            return await original_apply(updated, expected_attempt_count, history, call_date, increment)

        store.apply_disposition = racing_apply

        result = await engine.record_disposition(lead.id, "no_answer")

        assert calls["n"] == 2
        assert result.attempt_count == 2
        assert (await store.get_lead(lead.id)).attempt_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, store, settings, clock, make_lead):
        """Test that a permanently contended lead surfaces StaleLeadError"""
        lead = await store.seed_lead(make_lead())
        store.apply_disposition = AsyncMock(side_effect=StaleLeadError("changed"))
        engine = DispositionEngine(store, settings=settings, clock=clock)

        with pytest.raises(StaleLeadError):
            await engine.record_disposition(lead.id, "no_answer")

        assert store.apply_disposition.await_count == settings.disposition_max_retries


class TestPoolBookkeeping:
    """Tests for caller-number usage recorded with a disposition"""

    @pytest.mark.asyncio
    async def test_records_usage_on_caller_number(self, engine, store, make_lead, make_number, now):
        """Test that the number used gets its counters bumped"""
        lead = await store.seed_lead(make_lead())
        number = await store.seed_number(make_number(calls_this_hour=3, calls_today=10, total_calls=100))

        await engine.record_disposition(lead.id, "voicemail", caller_number_id=number.id)

        stored = await store.get_number(number.id)
        assert stored.calls_this_hour == 4
        assert stored.calls_today == 11
        assert stored.total_calls == 101
        assert stored.last_used_at == now

    @pytest.mark.asyncio
    async def test_hourly_cap_moves_number_to_cooling(self, engine, store, make_lead, make_number):
        """Test that the 20th call in an hour cools the number"""
        lead = await store.seed_lead(make_lead())
        number = await store.seed_number(make_number(max_calls_per_hour=20, calls_this_hour=19))

        await engine.record_disposition(lead.id, "no_answer", caller_number_id=number.id)

        stored = await store.get_number(number.id)
        assert stored.calls_this_hour == 20
        assert stored.status == PoolNumberStatus.COOLING

    @pytest.mark.asyncio
    async def test_spam_reports_retire_number(self, engine, store, make_lead, make_number):
        """Test that a number over the spam ceiling is retired on next use"""
        lead = await store.seed_lead(make_lead())
        number = await store.seed_number(make_number(spam_reports=3, calls_this_hour=1))

        await engine.record_disposition(lead.id, "conversation", caller_number_id=number.id)

        assert (await store.get_number(number.id)).status == PoolNumberStatus.RETIRED

    @pytest.mark.asyncio
    async def test_pool_failure_does_not_fail_disposition(self, store, settings, clock, make_lead):
        """Test that a broken pool update is logged and swallowed"""
        lead = await store.seed_lead(make_lead())
        pool = AsyncMock()
        pool.record_call.side_effect = RuntimeError("pool store down")
        engine = DispositionEngine(store, pool=pool, settings=settings, clock=clock)

        result = await engine.record_disposition(lead.id, "no_answer", caller_number_id="num-x")

        assert result.attempt_count == 1
        assert (await store.get_lead(lead.id)).attempt_count == 1
        pool.record_call.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_caller_number_is_ignored(self, engine, store, make_lead):
        """Test that an unknown number id does not fail the disposition"""
        lead = await store.seed_lead(make_lead())

        result = await engine.record_disposition(lead.id, "no_answer", caller_number_id="missing")

        assert result.attempt_count == 1
