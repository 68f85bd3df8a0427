"""
Calling Schedule Model
Maps the hour in the reference zone to the region currently in business hours
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum
import pytz


class DialerRegion(str, Enum):
    """Coarse US continental timezone buckets"""
    ET = "ET"
    CT = "CT"
    MT = "MT"
    PT = "PT"


ALL_REGIONS: List[str] = [r.value for r in DialerRegion]


# State -> region, for leads imported without an explicit region
STATE_REGIONS: Dict[str, str] = {
    # Eastern
    "CT": "ET", "DE": "ET", "DC": "ET", "FL": "ET", "GA": "ET", "IN": "ET",
    "KY": "ET", "ME": "ET", "MD": "ET", "MA": "ET", "MI": "ET", "NH": "ET",
    "NJ": "ET", "NY": "ET", "NC": "ET", "OH": "ET", "PA": "ET", "RI": "ET",
    "SC": "ET", "VT": "ET", "VA": "ET", "WV": "ET",
    # Central
    "AL": "CT", "AR": "CT", "IL": "CT", "IA": "CT", "KS": "CT", "LA": "CT",
    "MN": "CT", "MS": "CT", "MO": "CT", "NE": "CT", "ND": "CT", "OK": "CT",
    "SD": "CT", "TN": "CT", "TX": "CT", "WI": "CT",
    # Mountain
    "AZ": "MT", "CO": "MT", "ID": "MT", "MT": "MT", "NM": "MT", "UT": "MT",
    "WY": "MT",
    # Pacific
    "CA": "PT", "NV": "PT", "OR": "PT", "WA": "PT",
}


def region_for_state(state: Optional[str]) -> Optional[str]:
    """Region for a two-letter US state code (None when unknown)."""
    if not state:
        return None
    return STATE_REGIONS.get(state.strip().upper())


class HourBlock(BaseModel):
    """One hour of the calling day"""
    et_hour: int = Field(..., ge=0, le=23, description="Hour in the reference zone")
    region: DialerRegion
    label: str

    model_config = {"use_enum_values": True}


DEFAULT_BLOCKS = [
    {"et_hour": 9, "region": "ET", "label": "9-10 AM ET: East Coast morning"},
    {"et_hour": 10, "region": "ET", "label": "10-11 AM ET: East Coast morning"},
    {"et_hour": 11, "region": "CT", "label": "10-11 AM CT: Central morning"},
    {"et_hour": 12, "region": "CT", "label": "11 AM-12 PM CT: Central late morning"},
    {"et_hour": 13, "region": "MT", "label": "11 AM-12 PM MT: Mountain late morning"},
    {"et_hour": 14, "region": "PT", "label": "11 AM-12 PM PT: West Coast late morning"},
    {"et_hour": 15, "region": "PT", "label": "12-1 PM PT: West Coast midday"},
    {"et_hour": 16, "region": "ET", "label": "4-5 PM ET: East Coast end of day"},
    {"et_hour": 17, "region": "CT", "label": "4-5 PM CT: Central end of day"},
    {"et_hour": 18, "region": "MT", "label": "4-5 PM MT: Mountain end of day"},
    {"et_hour": 19, "region": "PT", "label": "4-5 PM PT: West Coast end of day"},
]


class CallingSchedule(BaseModel):
    """
    Static hour -> region schedule.

    Hours without a block have no target region; the queue then falls
    back to every region.
    """

    reference_timezone: str = Field(
        default="America/New_York",
        description="Zone the schedule hours are expressed in"
    )
    blocks: List[HourBlock] = Field(default_factory=lambda: [HourBlock(**b) for b in DEFAULT_BLOCKS])

    def reference_hour(self, now: Optional[datetime] = None) -> int:
        """Hour of `now` in the reference zone (naive datetimes are treated as UTC)."""
        try:
            tz = pytz.timezone(self.reference_timezone)
        except pytz.exceptions.UnknownTimeZoneError:
            tz = pytz.UTC

        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        return now.astimezone(tz).hour

    def block_for_hour(self, hour: int) -> Optional[HourBlock]:
        for block in self.blocks:
            if block.et_hour == hour:
                return block
        return None

    def region_for_hour(self, hour: int) -> Optional[str]:
        block = self.block_for_hour(hour)
        return block.region if block else None

    @classmethod
    def default(cls) -> "CallingSchedule":
        return cls()

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "CallingSchedule":
        """Create from the `dialer.schedule` config section."""
        if not data:
            return cls.default()
        return cls(**data)
