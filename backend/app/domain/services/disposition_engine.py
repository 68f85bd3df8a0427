"""
Disposition Engine
Turns a caller-reported outcome into the lead's next state

Day-of-call flow:
    queue -> caller dials -> caller reports outcome -> record_disposition()

The lead update, the history entry and the daily stats increment are
persisted as one atomic store operation. Pool counters are updated
afterwards on a best-effort basis.
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple, Union

import pytz

from app.core.config import Settings, get_settings
from app.domain.exceptions import InvalidArgumentError, NotFoundError, StaleLeadError
from app.domain.interfaces.dialer_store import DialerStore
from app.domain.models.dialer_lead import (
    NO_CONTACT_OUTCOMES,
    CallHistoryEntry,
    DialerLead,
    DialerOutcome,
    LeadStatus,
    parse_outcome,
    utcnow,
)
from app.domain.services.number_pool import NumberPoolService
from app.domain.services.stats_aggregator import increment_for_outcome

logger = logging.getLogger(__name__)


# Retry delays
NO_CONTACT_BASE_DELAY_DAYS = 2   # plus a random fraction of a day
CONVERSATION_DELAY_DAYS = 3
DEFAULT_CALLBACK_DELAY_DAYS = 1


@dataclass(frozen=True)
class DispositionTransition:
    """Next scheduling state for a lead"""
    new_status: str
    next_call_at: Optional[datetime]
    demo_booked: bool
    demo_date: Optional[datetime]
    not_interested: bool
    wrong_number: bool


@dataclass(frozen=True)
class DispositionResult:
    new_status: str
    attempt_count: int
    next_call_at: Optional[datetime] = None


def compute_transition(
    lead: DialerLead,
    outcome: DialerOutcome,
    now: datetime,
    demo_date: Optional[datetime] = None,
    callback_at: Optional[datetime] = None,
    rng: Callable[[], float] = random.random,
) -> DispositionTransition:
    """
    Pure transition table.

    no_answer/voicemail/gatekeeper retry in 2-3 days (jittered so a batch
    dialed together does not come back together), conversation in 3 days;
    both archive once the attempt cap is reached. demo_booked,
    not_interested and wrong_number close the lead without touching
    next_call_at. callback honours the promised time, else tomorrow.
    """
    attempts_after = lead.attempt_count + 1
    exhausted = attempts_after >= lead.max_attempts

    new_status = lead.status
    next_call_at = lead.next_call_at
    demo_booked = lead.demo_booked
    demo_date_val = lead.demo_date
    not_interested = lead.not_interested
    wrong_number = lead.wrong_number

    outcome = DialerOutcome(outcome)

    if outcome.value in NO_CONTACT_OUTCOMES:
        delay_days = NO_CONTACT_BASE_DELAY_DAYS + rng()
        next_call_at = now + timedelta(days=delay_days)
        new_status = LeadStatus.ARCHIVED if exhausted else LeadStatus.QUEUED

    elif outcome == DialerOutcome.CONVERSATION:
        next_call_at = now + timedelta(days=CONVERSATION_DELAY_DAYS)
        new_status = LeadStatus.ARCHIVED if exhausted else LeadStatus.QUEUED

    elif outcome == DialerOutcome.DEMO_BOOKED:
        new_status = LeadStatus.COMPLETED
        demo_booked = True
        demo_date_val = demo_date

    elif outcome == DialerOutcome.NOT_INTERESTED:
        new_status = LeadStatus.COMPLETED
        not_interested = True

    elif outcome == DialerOutcome.WRONG_NUMBER:
        new_status = LeadStatus.COMPLETED
        wrong_number = True

    elif outcome == DialerOutcome.CALLBACK:
        new_status = LeadStatus.CALLBACK
        next_call_at = callback_at or now + timedelta(days=DEFAULT_CALLBACK_DELAY_DAYS)

    return DispositionTransition(
        new_status=LeadStatus(new_status).value,
        next_call_at=next_call_at,
        demo_booked=demo_booked,
        demo_date=demo_date_val,
        not_interested=not_interested,
        wrong_number=wrong_number,
    )


def format_short_date(moment: datetime, tz_name: str = "America/New_York") -> str:
    """'Mar 4, 2:05 PM' in the given zone."""
    try:
        tz = pytz.timezone(tz_name)
    except pytz.exceptions.UnknownTimeZoneError:
        tz = pytz.UTC
    local = moment.astimezone(tz)
    hour = local.hour % 12 or 12
    return f"{local:%b} {local.day}, {hour}:{local:%M} {local:%p}"


def as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Client timestamps without an offset are taken as UTC."""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


def truncate_note(notes: Optional[str], max_length: int) -> Optional[str]:
    if notes is None:
        return None
    cleaned = notes.strip()
    if not cleaned:
        return None
    return cleaned[:max_length].rstrip()


def append_note(existing: str, entry: str) -> str:
    """Append a line to the lead's notes log; prior lines are never rewritten."""
    return f"{existing}\n{entry}" if existing else entry


def build_note_entry(moment: datetime, outcome: str, notes: Optional[str], tz_name: str) -> str:
    stamp = format_short_date(moment, tz_name)
    return f"[{stamp}] {outcome}: {notes}" if notes else f"[{stamp}] {outcome}"


class DispositionEngine:
    """
    Records call outcomes against leads.

    The engine is the single writer of a lead's scheduling fields and the
    only place attempt_count advances.
    """

    def __init__(
        self,
        store: DialerStore,
        pool: Optional[NumberPoolService] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
        rng: Callable[[], float] = random.random,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self._pool = pool or NumberPoolService(store, self._settings)
        self._clock = clock
        self._rng = rng

    def build_update(
        self,
        lead: DialerLead,
        outcome: DialerOutcome,
        now: datetime,
        notes: Optional[str] = None,
        demo_date: Optional[datetime] = None,
        callback_at: Optional[datetime] = None,
    ) -> Tuple[DialerLead, CallHistoryEntry]:
        """Compute the updated lead and its history entry without persisting."""
        transition = compute_transition(
            lead, outcome, now,
            demo_date=demo_date,
            callback_at=callback_at,
            rng=self._rng,
        )
        attempt_count = lead.attempt_count + 1
        bounded_notes = truncate_note(notes, self._settings.notes_entry_max_length)
        note_entry = build_note_entry(now, outcome.value, bounded_notes, self._settings.reference_timezone)

        updated = lead.model_copy(update={
            "status": transition.new_status,
            "attempt_count": attempt_count,
            "last_called_at": now,
            "last_outcome": outcome.value,
            "next_call_at": transition.next_call_at,
            "demo_booked": transition.demo_booked,
            "demo_date": transition.demo_date,
            "not_interested": transition.not_interested,
            "wrong_number": transition.wrong_number,
            "notes": append_note(lead.notes or "", note_entry),
        })

        history = CallHistoryEntry(
            lead_id=lead.id,
            attempt_number=attempt_count,
            outcome=outcome,
            notes=bounded_notes,
            demo_date=demo_date,
            callback_at=callback_at,
            created_at=now,
        )
        return updated, history

    async def record_disposition(
        self,
        lead_id: Optional[str],
        outcome: Union[str, DialerOutcome, None],
        notes: Optional[str] = None,
        demo_date: Optional[datetime] = None,
        callback_at: Optional[datetime] = None,
        caller_number_id: Optional[str] = None,
    ) -> DispositionResult:
        """
        Record one call outcome.

        Raises:
            InvalidArgumentError: lead_id or outcome missing, outcome unknown, or
                callback_at not in the future
            NotFoundError: the lead does not exist
            StaleLeadError: the lead kept changing under concurrent writers
        """
        if not lead_id:
            raise InvalidArgumentError("leadId and outcome are required")
        if not outcome:
            raise InvalidArgumentError("leadId and outcome are required")

        parsed = outcome if isinstance(outcome, DialerOutcome) else parse_outcome(outcome)
        if parsed is None:
            raise InvalidArgumentError(f"Unknown outcome: {outcome}")

        demo_date = as_utc(demo_date)
        callback_at = as_utc(callback_at)
        if parsed == DialerOutcome.CALLBACK and callback_at is not None and callback_at <= self._clock():
            raise InvalidArgumentError("callback_at must be in the future")

        max_tries = max(1, self._settings.disposition_max_retries)

        for attempt in range(1, max_tries + 1):
            lead = await self._store.get_lead(lead_id)
            if lead is None:
                raise NotFoundError(f"Lead not found: {lead_id}")

            now = self._clock()
            updated, history = self.build_update(
                lead, parsed, now,
                notes=notes,
                demo_date=demo_date,
                callback_at=callback_at,
            )

            try:
                await self._store.apply_disposition(
                    updated,
                    expected_attempt_count=lead.attempt_count,
                    history=history,
                    call_date=history.call_date,
                    increment=increment_for_outcome(parsed.value),
                )
                break
            except StaleLeadError:
                logger.warning(
                    f"Lead {lead_id} changed during disposition (try {attempt}/{max_tries}), re-reading"
                )
        else:
            raise StaleLeadError(f"Lead {lead_id} is being updated concurrently; disposition not recorded")

        logger.info(
            f"Disposition recorded: lead={lead_id} outcome={parsed.value} "
            f"attempt={updated.attempt_count} status={updated.status}"
        )

        if caller_number_id:
            await self._record_number_usage(caller_number_id, now)

        return DispositionResult(
            new_status=updated.status,
            attempt_count=updated.attempt_count,
            next_call_at=updated.next_call_at,
        )

    async def _record_number_usage(self, number_id: str, used_at: datetime) -> None:
        """Rotation bookkeeping must never block the disposition itself."""
        try:
            await self._pool.record_call(number_id, used_at)
        except Exception as e:
            logger.error(f"Failed to update phone number counters for {number_id}: {e}", exc_info=True)
