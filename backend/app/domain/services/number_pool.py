"""
Phone Number Pool Service
Rotation policy and administrative operations for outbound caller IDs
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from app.core.config import Settings, get_settings
from app.domain.exceptions import InvalidArgumentError, NotFoundError
from app.domain.interfaces.dialer_store import DialerStore
from app.domain.models.phone_number import PoolNumber, PoolNumberStatus
from app.utils.phone import extract_area_code, normalize_phone_number

logger = logging.getLogger(__name__)


# Fields an administrator may edit directly; status moves only via retire/reactivate
EDITABLE_FIELDS = ("friendly_name", "max_calls_per_hour", "cooldown_minutes", "spam_reports", "state")


def apply_call_to_number(number: PoolNumber, used_at: datetime, spam_threshold: int = 2) -> PoolNumber:
    """
    Count one call against a pool entry.

    Increments the hourly, daily and lifetime counters, moves an entry
    that reaches its hourly cap to cooling, and retires any entry whose
    spam reports exceed the threshold. A retired entry is never
    downgraded to cooling.
    """
    calls_this_hour = number.calls_this_hour + 1
    status = number.status

    if status != PoolNumberStatus.RETIRED and calls_this_hour >= number.max_calls_per_hour:
        status = PoolNumberStatus.COOLING

    # Spam ceiling overrides everything, including a fresh successful call
    if number.spam_reports > spam_threshold and status != PoolNumberStatus.RETIRED:
        status = PoolNumberStatus.RETIRED

    return number.model_copy(update={
        "calls_this_hour": calls_this_hour,
        "calls_today": number.calls_today + 1,
        "total_calls": number.total_calls + 1,
        "last_used_at": used_at,
        "status": PoolNumberStatus(status).value,
    })


def select_caller_number(
    numbers: Iterable[PoolNumber],
    lead_state: Optional[str] = None,
) -> Optional[PoolNumber]:
    """
    Pick the outbound number for the next call.

    Only active entries under their hourly cap are eligible. A number
    in the lead's state wins (local caller IDs get answered more);
    otherwise the least-used number this hour. None when nothing is
    eligible.
    """
    eligible = [
        n for n in numbers
        if n.status == PoolNumberStatus.ACTIVE and not n.at_hourly_cap
    ]
    if not eligible:
        return None

    # Stable sort keeps store order among equally-used numbers
    eligible.sort(key=lambda n: n.calls_this_hour)

    if lead_state:
        wanted = lead_state.strip().upper()
        for number in eligible:
            if number.state and number.state.strip().upper() == wanted:
                return number

    return eligible[0]


class NumberPoolService:
    """
    Administrative operations over the phone number pool.

    Hourly and daily rollover are not computed here; an external
    scheduler (see PoolResetWorker) calls reset_hourly/reset_daily.
    """

    def __init__(self, store: DialerStore, settings: Optional[Settings] = None):
        self._store = store
        self._settings = settings or get_settings()

    async def list_numbers(self) -> List[PoolNumber]:
        return await self._store.list_numbers()

    async def add_number(
        self,
        phone_number: str,
        friendly_name: Optional[str] = None,
        area_code: Optional[str] = None,
        state: Optional[str] = None,
        provider_sid: Optional[str] = None,
        max_calls_per_hour: Optional[int] = None,
        cooldown_minutes: Optional[int] = None,
    ) -> PoolNumber:
        """
        Add a number to the pool.

        Raises:
            InvalidArgumentError: phone number missing or malformed
            ConflictError: the number is already in the pool
        """
        if not phone_number:
            raise InvalidArgumentError("phone_number is required")

        try:
            normalized = normalize_phone_number(phone_number)
        except ValueError as e:
            raise InvalidArgumentError(str(e))

        number = PoolNumber(
            id=str(uuid.uuid4()),
            phone_number=normalized,
            friendly_name=friendly_name or None,
            area_code=area_code or extract_area_code(normalized),
            state=state.upper() if state else None,
            provider_sid=provider_sid or None,
            max_calls_per_hour=max_calls_per_hour or self._settings.default_max_calls_per_hour,
            cooldown_minutes=cooldown_minutes or self._settings.default_cooldown_minutes,
        )

        created = await self._store.add_number(number)
        logger.info(f"Added pool number {created.phone_number} ({created.id})")
        return created

    async def update_settings(self, number_id: str, updates: Dict[str, Any]) -> PoolNumber:
        """Edit the administrative fields of a pool entry."""
        fields = {k: v for k, v in updates.items() if k in EDITABLE_FIELDS and v is not None}
        unknown = set(updates) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidArgumentError(f"Fields not editable: {', '.join(sorted(unknown))}")

        if not fields:
            return await self._require(number_id)

        updated = await self._store.update_number(number_id, fields)
        if updated is None:
            raise NotFoundError(f"Pool number not found: {number_id}")
        return updated

    async def retire(self, number_id: str) -> PoolNumber:
        """Soft-retire a number. Retiring twice is a no-op."""
        number = await self._require(number_id)
        if number.status == PoolNumberStatus.RETIRED:
            return number

        updated = await self._store.update_number(number_id, {"status": PoolNumberStatus.RETIRED.value})
        if updated is None:
            raise NotFoundError(f"Pool number not found: {number_id}")
        logger.info(f"Retired pool number {number.phone_number}")
        return updated

    async def reactivate(self, number_id: str) -> PoolNumber:
        """Manual override of cooldown or retirement; clears the hourly count."""
        updated = await self._store.update_number(
            number_id,
            {"status": PoolNumberStatus.ACTIVE.value, "calls_this_hour": 0},
        )
        if updated is None:
            raise NotFoundError(f"Pool number not found: {number_id}")
        logger.info(f"Reactivated pool number {updated.phone_number}")
        return updated

    async def reset_hourly(self) -> int:
        count = await self._store.reset_hourly_counters()
        logger.info(f"Hourly counters reset on {count} pool numbers")
        return count

    async def reset_daily(self) -> int:
        count = await self._store.reset_daily_counters()
        logger.info(f"Daily counters reset on {count} pool numbers")
        return count

    async def record_call(self, number_id: str, used_at: datetime) -> Optional[PoolNumber]:
        """Count one call against a number; None when the number is unknown."""
        updated = await self._store.record_number_usage(number_id, used_at)
        if updated is None:
            logger.warning(f"Pool number {number_id} not found while recording usage")
            return None

        if updated.status != PoolNumberStatus.ACTIVE:
            logger.info(
                f"Pool number {updated.phone_number} is now {updated.status} "
                f"({updated.calls_this_hour}/{updated.max_calls_per_hour} this hour, "
                f"{updated.spam_reports} spam reports)"
            )
        return updated

    async def _require(self, number_id: str) -> PoolNumber:
        number = await self._store.get_number(number_id)
        if number is None:
            raise NotFoundError(f"Pool number not found: {number_id}")
        return number
