"""
Phone Number Pool Models
Outbound caller IDs managed for rotation and rate limiting
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from app.domain.models.dialer_lead import utcnow


class PoolNumberStatus(str, Enum):
    """Lifecycle status of a pool entry"""
    ACTIVE = "active"
    COOLING = "cooling"    # Hourly cap hit, waiting for the hourly reset
    RETIRED = "retired"    # Spam ceiling or manual retire


DEFAULT_MAX_CALLS_PER_HOUR = 20
DEFAULT_COOLDOWN_MINUTES = 30


class PoolNumber(BaseModel):
    """
    One outbound caller ID.

    Counters are only incremented here; hourly and daily rollover
    is performed by the external reset trigger.
    """

    # Identity
    id: str
    phone_number: str = Field(..., description="E.164 number, unique across the pool")

    # Classification
    friendly_name: Optional[str] = None
    area_code: Optional[str] = None
    state: Optional[str] = Field(None, description="State used for locality matching")
    provider_sid: Optional[str] = None

    # Rate state
    calls_this_hour: int = Field(default=0, ge=0)
    calls_today: int = Field(default=0, ge=0)
    total_calls: int = Field(default=0, ge=0)
    max_calls_per_hour: int = Field(default=DEFAULT_MAX_CALLS_PER_HOUR, ge=1)
    cooldown_minutes: int = Field(default=DEFAULT_COOLDOWN_MINUTES, ge=0)
    spam_reports: int = Field(default=0, ge=0)
    last_used_at: Optional[datetime] = None

    status: PoolNumberStatus = PoolNumberStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"use_enum_values": True}

    @property
    def at_hourly_cap(self) -> bool:
        return self.calls_this_hour >= self.max_calls_per_hour
