"""
Supabase Dialer Store
DialerStore backed by Supabase PostgreSQL via supabase-py

Plain reads and single-row writes go through table queries. Every write
that has to be atomic is a Postgres function (see
migrations/001_dialer_core.sql) invoked over RPC.
"""
import logging
import uuid
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Sequence

from supabase import Client

from app.core.config import Settings, get_settings
from app.domain.exceptions import ConflictError, NotFoundError, StaleLeadError
from app.domain.interfaces.dialer_store import DialerStore
from app.domain.models.call_log import CallLog, SmsMessage
from app.domain.models.call_stats import DailyCallStats, StatsIncrement
from app.domain.models.dialer_lead import CallHistoryEntry, DialerLead, LeadStatus
from app.domain.models.phone_number import PoolNumber
from app.utils.phone import normalize_phone_number

logger = logging.getLogger(__name__)

LEADS_TABLE = "dialer_leads"
HISTORY_TABLE = "call_history"
NUMBERS_TABLE = "phone_numbers"
DAILY_STATS_TABLE = "daily_call_stats"
CALL_LOGS_TABLE = "call_logs"
SMS_TABLE = "sms_messages"

UNIQUE_VIOLATION = "23505"


def _is_unique_violation(error: Exception) -> bool:
    code = getattr(error, "code", None)
    return code == UNIQUE_VIOLATION or UNIQUE_VIOLATION in str(error)


def _is_uuid(value: Optional[str]) -> bool:
    """Primary keys are uuid columns; PostgREST rejects anything else with 22P02."""
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _day_bounds(call_date: date) -> tuple:
    start = datetime.combine(call_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(call_date, time.max, tzinfo=timezone.utc)
    return start.isoformat(), end.isoformat()


class SupabaseDialerStore(DialerStore):
    """DialerStore over a Supabase client"""

    def __init__(self, supabase: Client, settings: Optional[Settings] = None):
        self.supabase = supabase
        self._settings = settings or get_settings()

    # ---------- Leads ----------

    async def get_lead(self, lead_id: str) -> Optional[DialerLead]:
        if not _is_uuid(lead_id):
            return None
        response = self.supabase.table(LEADS_TABLE).select("*").eq("id", lead_id).limit(1).execute()
        if not response.data:
            return None
        return DialerLead(**response.data[0])

    async def create_lead(self, lead: DialerLead) -> DialerLead:
        try:
            response = self.supabase.table(LEADS_TABLE).insert(
                lead.model_dump(mode="json")
            ).execute()
        except Exception as e:
            if _is_unique_violation(e):
                raise ConflictError(f"Lead already exists: {lead.phone_number}")
            raise
        return DialerLead(**response.data[0]) if response.data else lead

    async def apply_disposition(
        self,
        lead: DialerLead,
        expected_attempt_count: int,
        history: CallHistoryEntry,
        call_date: date,
        increment: StatsIncrement,
    ) -> None:
        history_row = history.model_dump(mode="json", exclude_none=True)
        response = self.supabase.rpc("record_dialer_disposition", {
            "p_lead_id": lead.id,
            "p_expected_attempt_count": expected_attempt_count,
            "p_lead": lead.model_dump(
                mode="json",
                include={
                    "status", "attempt_count", "next_call_at", "last_called_at",
                    "last_outcome", "demo_booked", "demo_date", "not_interested",
                    "wrong_number", "notes",
                },
            ),
            "p_history": history_row,
            "p_call_date": call_date.isoformat(),
            "p_increment": increment.model_dump(),
        }).execute()

        result = response.data
        if result == "not_found":
            raise NotFoundError(f"Lead not found: {lead.id}")
        if result == "stale":
            raise StaleLeadError(f"Lead {lead.id} changed since attempt {expected_attempt_count}")

    async def list_due_callbacks(self, now: datetime, limit: Optional[int] = None) -> List[DialerLead]:
        query = self.supabase.table(LEADS_TABLE).select("*").eq(
            "status", LeadStatus.CALLBACK.value
        ).eq(
            "has_attempts_left", True
        ).lte(
            "next_call_at", now.isoformat()
        ).order("next_call_at")
        if limit is not None:
            query = query.limit(limit)
        response = query.execute()
        return [DialerLead(**row) for row in response.data or []]

    async def list_queued_leads(self, region: Optional[str], limit: int) -> List[DialerLead]:
        query = self.supabase.table(LEADS_TABLE).select("*").eq(
            "status", LeadStatus.QUEUED.value
        ).eq("has_attempts_left", True)
        if region:
            query = query.eq("timezone", region)
        response = query.order("attempt_count").order("created_at").limit(limit).execute()
        return [DialerLead(**row) for row in response.data or []]

    async def count_leads(self, statuses: Sequence[str], region: Optional[str] = None) -> int:
        query = self.supabase.table(LEADS_TABLE).select(
            "id", count="exact"
        ).in_("status", list(statuses)).eq("has_attempts_left", True)
        if region:
            query = query.eq("timezone", region)
        response = query.execute()
        return response.count or 0

    async def find_lead_id_by_phone(self, phone_number: str) -> Optional[str]:
        try:
            normalized = normalize_phone_number(phone_number)
        except ValueError:
            return None
        response = self.supabase.table(LEADS_TABLE).select("id").eq(
            "phone_number", normalized
        ).limit(1).execute()
        return response.data[0]["id"] if response.data else None

    # ---------- Call history ----------

    async def list_history_on(self, call_date: date) -> List[CallHistoryEntry]:
        start, end = _day_bounds(call_date)
        response = self.supabase.table(HISTORY_TABLE).select("*").gte(
            "created_at", start
        ).lte("created_at", end).order("created_at").execute()
        return [CallHistoryEntry(**row) for row in response.data or []]

    async def count_history_on(self, call_date: date) -> int:
        start, end = _day_bounds(call_date)
        response = self.supabase.table(HISTORY_TABLE).select(
            "id", count="exact"
        ).gte("created_at", start).lte("created_at", end).execute()
        return response.count or 0

    # ---------- Phone number pool ----------

    async def list_numbers(self, status: Optional[str] = None) -> List[PoolNumber]:
        query = self.supabase.table(NUMBERS_TABLE).select("*")
        if status:
            query = query.eq("status", status)
        response = query.order("created_at").execute()
        return [PoolNumber(**row) for row in response.data or []]

    async def get_number(self, number_id: str) -> Optional[PoolNumber]:
        if not _is_uuid(number_id):
            return None
        response = self.supabase.table(NUMBERS_TABLE).select("*").eq("id", number_id).limit(1).execute()
        return PoolNumber(**response.data[0]) if response.data else None

    async def add_number(self, number: PoolNumber) -> PoolNumber:
        try:
            response = self.supabase.table(NUMBERS_TABLE).insert(
                number.model_dump(mode="json")
            ).execute()
        except Exception as e:
            if _is_unique_violation(e):
                raise ConflictError(f"Phone number already in pool: {number.phone_number}")
            raise
        return PoolNumber(**response.data[0]) if response.data else number

    async def update_number(self, number_id: str, fields: Dict[str, Any]) -> Optional[PoolNumber]:
        if not _is_uuid(number_id):
            return None
        response = self.supabase.table(NUMBERS_TABLE).update(fields).eq("id", number_id).execute()
        return PoolNumber(**response.data[0]) if response.data else None

    async def record_number_usage(self, number_id: str, used_at: datetime) -> Optional[PoolNumber]:
        if not _is_uuid(number_id):
            return None
        response = self.supabase.rpc("record_dialer_number_usage", {
            "p_number_id": number_id,
            "p_used_at": used_at.isoformat(),
            "p_spam_threshold": self._settings.spam_report_threshold,
        }).execute()
        rows = response.data
        if isinstance(rows, list):
            rows = rows[0] if rows else None
        return PoolNumber(**rows) if rows else None

    async def reset_hourly_counters(self) -> int:
        response = self.supabase.rpc("reset_dialer_hourly_counters", {}).execute()
        return int(response.data or 0)

    async def reset_daily_counters(self) -> int:
        response = self.supabase.rpc("reset_dialer_daily_counters", {}).execute()
        return int(response.data or 0)

    # ---------- Daily stats ----------

    async def increment_daily_stats(self, call_date: date, increment: StatsIncrement) -> DailyCallStats:
        response = self.supabase.rpc("increment_daily_call_stats", {
            "p_call_date": call_date.isoformat(),
            "p_increment": increment.model_dump(),
        }).execute()
        rows = response.data
        if isinstance(rows, list):
            rows = rows[0] if rows else None
        if not rows:
            return DailyCallStats(call_date=call_date).plus(increment)
        return DailyCallStats(**rows)

    async def get_daily_stats(self, call_date: date) -> Optional[DailyCallStats]:
        response = self.supabase.table(DAILY_STATS_TABLE).select("*").eq(
            "call_date", call_date.isoformat()
        ).limit(1).execute()
        return DailyCallStats(**response.data[0]) if response.data else None

    async def list_daily_stats(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> List[DailyCallStats]:
        query = self.supabase.table(DAILY_STATS_TABLE).select("*")
        if from_date:
            query = query.gte("call_date", from_date.isoformat())
        if to_date:
            query = query.lte("call_date", to_date.isoformat())
        response = query.order("call_date", desc=True).execute()
        return [DailyCallStats(**row) for row in response.data or []]

    # ---------- Provider call logs ----------

    async def create_call_log(self, log: CallLog) -> CallLog:
        response = self.supabase.table(CALL_LOGS_TABLE).insert(
            log.model_dump(mode="json", exclude_none=True)
        ).execute()
        return CallLog(**response.data[0]) if response.data else log

    async def get_call_log(self, call_control_id: str) -> Optional[CallLog]:
        response = self.supabase.table(CALL_LOGS_TABLE).select("*").eq(
            "call_control_id", call_control_id
        ).limit(1).execute()
        return CallLog(**response.data[0]) if response.data else None

    async def update_call_log(self, call_control_id: str, fields: Dict[str, Any]) -> bool:
        response = self.supabase.table(CALL_LOGS_TABLE).update(fields).eq(
            "call_control_id", call_control_id
        ).execute()
        return bool(response.data)

    async def create_sms_message(self, message: SmsMessage) -> SmsMessage:
        response = self.supabase.table(SMS_TABLE).insert(
            message.model_dump(mode="json", exclude_none=True)
        ).execute()
        return SmsMessage(**response.data[0]) if response.data else message
