"""
Telephony Webhook Normalizer
Maps provider call/SMS lifecycle events onto the internal status vocabulary

Only call-log and SMS rows are derived from these events; lead state is
owned by the disposition engine.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from app.domain.exceptions import InvalidArgumentError
from app.domain.models.call_log import CallLogStatus, SmsStatus, TelephonyEvent


# Provider call event -> internal status (None = nothing to record)
CALL_EVENT_STATUS_MAP: Dict[str, CallLogStatus] = {
    "call.initiated": CallLogStatus.INITIATED,
    "call.ringing": CallLogStatus.RINGING,
    "call.answered": CallLogStatus.ANSWERED,
    "call.bridged": CallLogStatus.BRIDGED,
    "call.hangup": CallLogStatus.COMPLETED,
    "call.machine.detection.ended": CallLogStatus.ANSWERED,  # voicemail/machine picked up
    "call.machine.greeting.ended": CallLogStatus.COMPLETED,
}

HANGUP_CAUSE_STATUS_MAP: Dict[str, CallLogStatus] = {
    "CALL_REJECTED": CallLogStatus.BUSY,
    "NO_ANSWER": CallLogStatus.NO_ANSWER,
    "ORIGINATOR_CANCEL": CallLogStatus.NO_ANSWER,
    "UNALLOCATED_NUMBER": CallLogStatus.FAILED,
}

SMS_FAILURE_STATES = {"delivery_failed", "sending_failed", "failed", "undelivered"}


def parse_webhook_event(body: Any) -> TelephonyEvent:
    """
    Parse the provider envelope: {"data": {"event_type", "payload", ...}}.

    Raises:
        InvalidArgumentError: body is not a recognisable envelope
    """
    if not isinstance(body, dict):
        raise InvalidArgumentError("Webhook body must be a JSON object")

    data = body.get("data")
    if not isinstance(data, dict) or not data.get("event_type"):
        raise InvalidArgumentError("Webhook body missing data.event_type")

    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        raise InvalidArgumentError("Webhook data.payload must be an object")

    return TelephonyEvent(
        id=data.get("id"),
        event_type=data["event_type"],
        occurred_at=data.get("occurred_at"),
        record_type=data.get("record_type"),
        payload=payload,
    )


def map_call_event_to_status(event_type: str) -> Optional[str]:
    status = CALL_EVENT_STATUS_MAP.get(event_type)
    return status.value if status else None


def map_hangup_cause(hangup_cause: Optional[str]) -> str:
    """Final call status from the provider's hangup cause."""
    return HANGUP_CAUSE_STATUS_MAP.get((hangup_cause or "").upper(), CallLogStatus.COMPLETED).value


def call_direction(payload: Dict[str, Any]) -> str:
    return "inbound" if payload.get("direction") == "incoming" else "outbound"


def call_duration_seconds(start_time: Optional[str], end_time: Optional[str]) -> int:
    """Whole seconds between two ISO-8601 timestamps; 0 when either is missing or bad."""
    if not start_time or not end_time:
        return 0
    try:
        start = datetime.fromisoformat(start_time.replace("Z", "+00:00"))
        end = datetime.fromisoformat(end_time.replace("Z", "+00:00"))
    except ValueError:
        return 0
    return max(0, int((end - start).total_seconds()))


def recording_url(payload: Dict[str, Any]) -> Optional[str]:
    urls = payload.get("recording_urls") or {}
    return urls.get("mp3") or urls.get("wav") or None


def map_sms_event(event: TelephonyEvent) -> Optional[str]:
    """SMS lifecycle status for a message.* event (None for other events)."""
    if event.event_type == "message.received":
        return SmsStatus.RECEIVED.value
    if event.event_type == "message.sent":
        return SmsStatus.SENT.value
    if event.event_type == "message.finalized":
        recipients = event.payload.get("to") or []
        states = {
            (r.get("status") or "").lower()
            for r in recipients
            if isinstance(r, dict)
        }
        if states & SMS_FAILURE_STATES:
            return SmsStatus.FAILED.value
        return SmsStatus.DELIVERED.value
    return None


def sms_from_number(payload: Dict[str, Any]) -> str:
    """`from` arrives either as a string or as {"phone_number": ...}."""
    raw = payload.get("from")
    if isinstance(raw, dict):
        return raw.get("phone_number") or ""
    return raw or ""


def sms_to_number(payload: Dict[str, Any]) -> Optional[str]:
    recipients = payload.get("to")
    if isinstance(recipients, list) and recipients:
        first = recipients[0]
        if isinstance(first, dict):
            return first.get("phone_number")
        return str(first)
    if isinstance(recipients, str):
        return recipients
    return None
