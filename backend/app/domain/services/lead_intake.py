"""
Lead Intake
Creates dialable leads in their initial queued state
"""
import logging
import uuid
from typing import Optional

from app.core.config import Settings, get_settings
from app.domain.exceptions import ConflictError, InvalidArgumentError
from app.domain.interfaces.dialer_store import DialerStore
from app.domain.models.calling_schedule import region_for_state
from app.domain.models.dialer_lead import DialerLead, LeadStatus
from app.domain.services.queue_builder import normalize_region
from app.utils.phone import normalize_phone_number

logger = logging.getLogger(__name__)


class LeadIntakeService:

    def __init__(self, store: DialerStore, settings: Optional[Settings] = None):
        self._store = store
        self._settings = settings or get_settings()

    async def create_lead(
        self,
        phone_number: str,
        business_name: str = "",
        website: Optional[str] = None,
        owner_name: Optional[str] = None,
        state: Optional[str] = None,
        timezone: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ) -> DialerLead:
        """
        Create a queued lead with no attempts.

        The region comes from `timezone` when given, otherwise from the
        US state.

        Raises:
            InvalidArgumentError: phone number missing/invalid or unknown region
            ConflictError: a lead with this phone number already exists
        """
        if not phone_number:
            raise InvalidArgumentError("phone_number is required")
        try:
            normalized = normalize_phone_number(phone_number)
        except ValueError as e:
            raise InvalidArgumentError(str(e))

        if max_attempts is not None and max_attempts < 1:
            raise InvalidArgumentError("max_attempts must be at least 1")

        if await self._store.find_lead_id_by_phone(normalized):
            raise ConflictError(f"A lead with phone number {normalized} already exists")

        state = state.strip().upper() if state else None
        region = normalize_region(timezone) or region_for_state(state)

        lead = DialerLead(
            id=str(uuid.uuid4()),
            business_name=business_name or "",
            phone_number=normalized,
            website=website or None,
            owner_name=owner_name or None,
            state=state,
            timezone=region,
            status=LeadStatus.QUEUED,
            attempt_count=0,
            max_attempts=max_attempts or self._settings.default_max_attempts,
        )
        created = await self._store.create_lead(lead)
        logger.info(f"Lead created: {created.id} ({created.business_name or created.phone_number}, region={region})")
        return created
