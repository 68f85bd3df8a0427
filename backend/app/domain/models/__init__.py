"""Domain models"""

# Leads and call history
from .dialer_lead import (
    DialerOutcome,
    LeadStatus,
    DialerLead,
    CallHistoryEntry,
    parse_outcome,
)

# Outbound number pool
from .phone_number import (
    PoolNumberStatus,
    PoolNumber,
)

# Stats
from .call_stats import (
    StatsIncrement,
    DailyCallStats,
    RollingStats,
    HourlyBreakdown,
    TodayStats,
    CallDashboard,
)

# Queue and schedule
from .calling_schedule import (
    DialerRegion,
    HourBlock,
    CallingSchedule,
)

from .dialer_queue import (
    QueueSnapshot,
)

# Provider logs
from .call_log import (
    CallLogStatus,
    SmsStatus,
    CallLog,
    SmsMessage,
    TelephonyEvent,
)

from .transcript_annotation import (
    TranscriptAnnotation,
)

__all__ = [
    # Leads
    "DialerOutcome",
    "LeadStatus",
    "DialerLead",
    "CallHistoryEntry",
    "parse_outcome",
    # Pool
    "PoolNumberStatus",
    "PoolNumber",
    # Stats
    "StatsIncrement",
    "DailyCallStats",
    "RollingStats",
    "HourlyBreakdown",
    "TodayStats",
    "CallDashboard",
    # Queue
    "DialerRegion",
    "HourBlock",
    "CallingSchedule",
    "QueueSnapshot",
    # Provider logs
    "CallLogStatus",
    "SmsStatus",
    "CallLog",
    "SmsMessage",
    "TelephonyEvent",
    "TranscriptAnnotation",
]
