"""
Dialer Store Interface
Abstract base class for the durable store behind the dialer services

Every write that must not lose updates under concurrency is a single
method here (disposition apply, stats increment, number usage, bulk
resets) so each adapter can map it onto one atomic primitive.
"""
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from app.domain.models.call_log import CallLog, SmsMessage
from app.domain.models.call_stats import DailyCallStats, StatsIncrement
from app.domain.models.dialer_lead import CallHistoryEntry, DialerLead
from app.domain.models.phone_number import PoolNumber


class DialerStore(ABC):
    """Abstract base class for dialer persistence"""

    # ---------- Leads ----------

    @abstractmethod
    async def get_lead(self, lead_id: str) -> Optional[DialerLead]:
        """Return the lead or None"""
        pass

    @abstractmethod
    async def create_lead(self, lead: DialerLead) -> DialerLead:
        pass

    @abstractmethod
    async def apply_disposition(
        self,
        lead: DialerLead,
        expected_attempt_count: int,
        history: CallHistoryEntry,
        call_date: date,
        increment: StatsIncrement,
    ) -> None:
        """
        Atomically persist one disposition.

        Writes the updated lead only if its stored attempt_count still equals
        `expected_attempt_count`, appends the history entry and increments the
        daily stats row for `call_date`. All or nothing.

        Raises:
            NotFoundError: lead does not exist
            StaleLeadError: attempt_count changed since it was read
        """
        pass

    @abstractmethod
    async def list_due_callbacks(self, now: datetime, limit: Optional[int] = None) -> List[DialerLead]:
        """status=callback, next_call_at <= now, attempts left; most overdue first (no cap when limit is None)"""
        pass

    @abstractmethod
    async def list_queued_leads(self, region: Optional[str], limit: int) -> List[DialerLead]:
        """status=queued, attempts left, optional region; fewest attempts then oldest first"""
        pass

    @abstractmethod
    async def count_leads(self, statuses: Sequence[str], region: Optional[str] = None) -> int:
        """Count leads in `statuses` with attempts left"""
        pass

    @abstractmethod
    async def find_lead_id_by_phone(self, phone_number: str) -> Optional[str]:
        pass

    # ---------- Call history ----------

    @abstractmethod
    async def list_history_on(self, call_date: date) -> List[CallHistoryEntry]:
        pass

    @abstractmethod
    async def count_history_on(self, call_date: date) -> int:
        pass

    # ---------- Phone number pool ----------

    @abstractmethod
    async def list_numbers(self, status: Optional[str] = None) -> List[PoolNumber]:
        """Pool entries ordered by created_at"""
        pass

    @abstractmethod
    async def get_number(self, number_id: str) -> Optional[PoolNumber]:
        pass

    @abstractmethod
    async def add_number(self, number: PoolNumber) -> PoolNumber:
        """Raises ConflictError when the phone number already exists"""
        pass

    @abstractmethod
    async def update_number(self, number_id: str, fields: Dict[str, Any]) -> Optional[PoolNumber]:
        """Apply a partial update; None when the entry does not exist"""
        pass

    @abstractmethod
    async def record_number_usage(self, number_id: str, used_at: datetime) -> Optional[PoolNumber]:
        """
        Atomically count one call against a pool entry and apply the
        cooling/retire thresholds. None when the entry does not exist.
        """
        pass

    @abstractmethod
    async def reset_hourly_counters(self) -> int:
        """calls_this_hour=0 on non-retired entries, cooling -> active; returns rows touched"""
        pass

    @abstractmethod
    async def reset_daily_counters(self) -> int:
        """calls_today=0 on every entry; returns rows touched"""
        pass

    # ---------- Daily stats ----------

    @abstractmethod
    async def increment_daily_stats(self, call_date: date, increment: StatsIncrement) -> DailyCallStats:
        """Atomic upsert-increment of one daily row"""
        pass

    @abstractmethod
    async def get_daily_stats(self, call_date: date) -> Optional[DailyCallStats]:
        pass

    @abstractmethod
    async def list_daily_stats(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> List[DailyCallStats]:
        """Rows in the inclusive range, newest first"""
        pass

    # ---------- Provider call logs ----------

    @abstractmethod
    async def create_call_log(self, log: CallLog) -> CallLog:
        pass

    @abstractmethod
    async def get_call_log(self, call_control_id: str) -> Optional[CallLog]:
        pass

    @abstractmethod
    async def update_call_log(self, call_control_id: str, fields: Dict[str, Any]) -> bool:
        """Returns False when no log matches"""
        pass

    @abstractmethod
    async def create_sms_message(self, message: SmsMessage) -> SmsMessage:
        pass
