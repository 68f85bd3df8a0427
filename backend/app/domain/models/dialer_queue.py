"""
Dialer Queue Models
What the power dialer shows the caller right now
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from app.domain.models.dialer_lead import DialerLead
from app.domain.models.phone_number import PoolNumber


class QueueSnapshot(BaseModel):
    """Ordered leads to call plus progress metrics and a caller-ID suggestion"""
    leads: List[DialerLead] = Field(default_factory=list)
    total_today: int = 0
    completed_today: int = 0
    current_region: Optional[str] = None
    current_hour_block: Optional[str] = None
    callbacks_due: List[DialerLead] = Field(default_factory=list)
    breakdown_by_region: Dict[str, int] = Field(default_factory=dict)
    selected_number: Optional[PoolNumber] = None
