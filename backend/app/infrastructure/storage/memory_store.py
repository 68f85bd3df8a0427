"""
In-Memory Dialer Store
Process-local DialerStore used for development and tests

One asyncio.Lock guards every mutation, which makes each interface
method atomic within the process. Returned models are copies so callers
cannot mutate stored state.
"""
import asyncio
import logging
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from app.core.config import Settings, get_settings
from app.domain.exceptions import ConflictError, NotFoundError, StaleLeadError
from app.domain.interfaces.dialer_store import DialerStore
from app.domain.models.call_log import CallLog, SmsMessage
from app.domain.models.call_stats import DailyCallStats, StatsIncrement
from app.domain.models.dialer_lead import CallHistoryEntry, DialerLead, LeadStatus
from app.domain.models.phone_number import PoolNumber, PoolNumberStatus
from app.domain.services.number_pool import apply_call_to_number
from app.utils.phone import normalize_phone_number

logger = logging.getLogger(__name__)


class InMemoryDialerStore(DialerStore):
    """Dict-backed DialerStore"""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self._lock = asyncio.Lock()
        self._leads: Dict[str, DialerLead] = {}
        self._history: List[CallHistoryEntry] = []
        self._numbers: Dict[str, PoolNumber] = {}
        self._daily: Dict[date, DailyCallStats] = {}
        self._call_logs: Dict[str, CallLog] = {}
        self._sms: List[SmsMessage] = []

    # ---------- Leads ----------

    async def get_lead(self, lead_id: str) -> Optional[DialerLead]:
        lead = self._leads.get(lead_id)
        return lead.model_copy(deep=True) if lead else None

    async def create_lead(self, lead: DialerLead) -> DialerLead:
        async with self._lock:
            if lead.id in self._leads:
                raise ConflictError(f"Lead already exists: {lead.id}")
            self._leads[lead.id] = lead.model_copy(deep=True)
        return lead.model_copy(deep=True)

    async def apply_disposition(
        self,
        lead: DialerLead,
        expected_attempt_count: int,
        history: CallHistoryEntry,
        call_date: date,
        increment: StatsIncrement,
    ) -> None:
        async with self._lock:
            current = self._leads.get(lead.id)
            if current is None:
                raise NotFoundError(f"Lead not found: {lead.id}")
            if current.attempt_count != expected_attempt_count:
                raise StaleLeadError(
                    f"Lead {lead.id} attempt_count is {current.attempt_count}, "
                    f"expected {expected_attempt_count}"
                )

            self._leads[lead.id] = lead.model_copy(deep=True)
            if history.id is None:
                history = history.model_copy(update={"id": str(uuid.uuid4())})
            self._history.append(history)
            self._increment_locked(call_date, increment)

    async def list_due_callbacks(self, now: datetime, limit: Optional[int] = None) -> List[DialerLead]:
        due = [
            lead for lead in self._leads.values()
            if lead.status == LeadStatus.CALLBACK
            and lead.next_call_at is not None
            and lead.next_call_at <= now
            and lead.has_attempts_left
        ]
        due.sort(key=lambda lead: lead.next_call_at)
        if limit is not None:
            due = due[:limit]
        return [lead.model_copy(deep=True) for lead in due]

    async def list_queued_leads(self, region: Optional[str], limit: int) -> List[DialerLead]:
        queued = [
            lead for lead in self._leads.values()
            if lead.status == LeadStatus.QUEUED
            and lead.has_attempts_left
            and (region is None or lead.timezone == region)
        ]
        queued.sort(key=lambda lead: (lead.attempt_count, lead.created_at))
        return [lead.model_copy(deep=True) for lead in queued[:limit]]

    async def count_leads(self, statuses: Sequence[str], region: Optional[str] = None) -> int:
        wanted = set(statuses)
        return sum(
            1 for lead in self._leads.values()
            if lead.status in wanted
            and lead.has_attempts_left
            and (region is None or lead.timezone == region)
        )

    async def find_lead_id_by_phone(self, phone_number: str) -> Optional[str]:
        try:
            target = normalize_phone_number(phone_number)
        except ValueError:
            return None
        for lead in self._leads.values():
            try:
                if normalize_phone_number(lead.phone_number) == target:
                    return lead.id
            except ValueError:
                continue
        return None

    # ---------- Call history ----------

    async def list_history_on(self, call_date: date) -> List[CallHistoryEntry]:
        return [entry for entry in self._history if entry.call_date == call_date]

    async def count_history_on(self, call_date: date) -> int:
        return sum(1 for entry in self._history if entry.call_date == call_date)

    # ---------- Phone number pool ----------

    async def list_numbers(self, status: Optional[str] = None) -> List[PoolNumber]:
        numbers = [
            n for n in self._numbers.values()
            if status is None or n.status == status
        ]
        numbers.sort(key=lambda n: n.created_at)
        return [n.model_copy(deep=True) for n in numbers]

    async def get_number(self, number_id: str) -> Optional[PoolNumber]:
        number = self._numbers.get(number_id)
        return number.model_copy(deep=True) if number else None

    async def add_number(self, number: PoolNumber) -> PoolNumber:
        async with self._lock:
            if any(n.phone_number == number.phone_number for n in self._numbers.values()):
                raise ConflictError(f"Phone number already in pool: {number.phone_number}")
            self._numbers[number.id] = number.model_copy(deep=True)
        return number.model_copy(deep=True)

    async def update_number(self, number_id: str, fields: Dict[str, Any]) -> Optional[PoolNumber]:
        async with self._lock:
            current = self._numbers.get(number_id)
            if current is None:
                return None
            updated = PoolNumber(**{**current.model_dump(), **fields})
            self._numbers[number_id] = updated
        return updated.model_copy(deep=True)

    async def record_number_usage(self, number_id: str, used_at: datetime) -> Optional[PoolNumber]:
        async with self._lock:
            current = self._numbers.get(number_id)
            if current is None:
                return None
            updated = apply_call_to_number(current, used_at, self._settings.spam_report_threshold)
            self._numbers[number_id] = updated
        return updated.model_copy(deep=True)

    async def reset_hourly_counters(self) -> int:
        touched = 0
        async with self._lock:
            for number_id, number in self._numbers.items():
                if number.status == PoolNumberStatus.RETIRED:
                    continue
                status = PoolNumberStatus.ACTIVE.value if number.status == PoolNumberStatus.COOLING else number.status
                self._numbers[number_id] = number.model_copy(update={"calls_this_hour": 0, "status": status})
                touched += 1
        return touched

    async def reset_daily_counters(self) -> int:
        async with self._lock:
            for number_id, number in self._numbers.items():
                self._numbers[number_id] = number.model_copy(update={"calls_today": 0})
            return len(self._numbers)

    # ---------- Daily stats ----------

    async def increment_daily_stats(self, call_date: date, increment: StatsIncrement) -> DailyCallStats:
        async with self._lock:
            row = self._increment_locked(call_date, increment)
        return row.model_copy()

    def _increment_locked(self, call_date: date, increment: StatsIncrement) -> DailyCallStats:
        row = self._daily.get(call_date) or DailyCallStats(call_date=call_date)
        row = row.plus(increment)
        self._daily[call_date] = row
        return row

    async def get_daily_stats(self, call_date: date) -> Optional[DailyCallStats]:
        row = self._daily.get(call_date)
        return row.model_copy() if row else None

    async def list_daily_stats(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> List[DailyCallStats]:
        rows = [
            row for d, row in self._daily.items()
            if (from_date is None or d >= from_date) and (to_date is None or d <= to_date)
        ]
        rows.sort(key=lambda row: row.call_date, reverse=True)
        return [row.model_copy() for row in rows]

    # ---------- Provider call logs ----------

    async def create_call_log(self, log: CallLog) -> CallLog:
        async with self._lock:
            if log.id is None:
                log = log.model_copy(update={"id": str(uuid.uuid4())})
            self._call_logs[log.call_control_id] = log
        return log.model_copy(deep=True)

    async def get_call_log(self, call_control_id: str) -> Optional[CallLog]:
        log = self._call_logs.get(call_control_id)
        return log.model_copy(deep=True) if log else None

    async def update_call_log(self, call_control_id: str, fields: Dict[str, Any]) -> bool:
        async with self._lock:
            current = self._call_logs.get(call_control_id)
            if current is None:
                return False
            self._call_logs[call_control_id] = CallLog(**{**current.model_dump(), **fields})
        return True

    async def create_sms_message(self, message: SmsMessage) -> SmsMessage:
        async with self._lock:
            if message.id is None:
                message = message.model_copy(update={"id": str(uuid.uuid4())})
            self._sms.append(message)
        return message.model_copy(deep=True)

    # ---------- Seeding / inspection ----------

    async def seed_lead(self, lead: DialerLead) -> DialerLead:
        """Insert or replace a lead as-is."""
        async with self._lock:
            self._leads[lead.id] = lead.model_copy(deep=True)
        return lead

    async def seed_number(self, number: PoolNumber) -> PoolNumber:
        async with self._lock:
            self._numbers[number.id] = number.model_copy(deep=True)
        return number

    @property
    def history(self) -> List[CallHistoryEntry]:
        return list(self._history)

    @property
    def sms_messages(self) -> List[SmsMessage]:
        return list(self._sms)
