"""
Call Stats Models
Daily roll-up rows and the read-side aggregates derived from them
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date


class StatsIncrement(BaseModel):
    """
    Increments applied to one daily row.

    All fields are non-negative; the store applies them as a single
    atomic upsert-increment keyed by call_date.
    """
    total_dials: int = Field(default=0, ge=0)
    contacts: int = Field(default=0, ge=0)
    conversations: int = Field(default=0, ge=0)
    demos_booked: int = Field(default=0, ge=0)
    demos_held: int = Field(default=0, ge=0)
    deals_closed: int = Field(default=0, ge=0)
    hours_dialed: float = Field(default=0.0, ge=0.0)

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


class DailyCallStats(BaseModel):
    """One row per calendar date"""
    call_date: date
    total_dials: int = 0
    contacts: int = 0
    conversations: int = 0
    demos_booked: int = 0
    demos_held: int = 0
    deals_closed: int = 0
    hours_dialed: float = 0.0
    notes: Optional[str] = None

    def plus(self, increment: StatsIncrement) -> "DailyCallStats":
        """Return a copy with the increment applied."""
        data = self.model_dump()
        for key, value in increment.model_dump().items():
            data[key] = data[key] + value
        return DailyCallStats(**data)


class RollingStats(BaseModel):
    """Aggregate over the dated rows found in a rolling window"""
    avg_dials: int = 0
    avg_contacts: int = 0
    avg_conversations: int = 0
    avg_demos: float = 0.0
    total_dials: int = 0
    total_contacts: int = 0
    total_conversations: int = 0
    total_demos: int = 0
    total_deals: int = 0
    days_with_data: int = 0
    contact_rate: float = 0.0
    conversation_rate: float = 0.0
    demo_rate: float = 0.0
    close_rate: float = 0.0


class HourlyBreakdown(BaseModel):
    """Dials and contacts for one hour of the day"""
    hour: int = Field(..., ge=0, le=23)
    dials: int = 0
    contacts: int = 0
    contact_rate: float = 0.0


class TodayStats(BaseModel):
    total_dials: int = 0
    contacts: int = 0
    conversations: int = 0
    demos_booked: int = 0
    demos_held: int = 0
    deals_closed: int = 0
    hours_dialed: float = 0.0


class CallDashboard(BaseModel):
    """Everything the calls dashboard renders in one payload"""
    today: TodayStats
    rolling7: RollingStats
    rolling30: RollingStats
    daily_history: List[DailyCallStats]
    hourly_breakdown: List[HourlyBreakdown]
