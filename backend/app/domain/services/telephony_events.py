"""
Telephony Event Handler
Applies normalized provider events to call-log and SMS rows
"""
import logging
from typing import Any, Dict, Optional

from app.domain.interfaces.dialer_store import DialerStore
from app.domain.models.call_log import CallLog, CallLogStatus, SmsMessage, SmsStatus, TelephonyEvent
from app.domain.services.webhook_normalizer import (
    call_direction,
    call_duration_seconds,
    map_call_event_to_status,
    map_hangup_cause,
    map_sms_event,
    recording_url,
    sms_from_number,
    sms_to_number,
)

logger = logging.getLogger(__name__)


class TelephonyEventHandler:
    """
    Routes provider events to call-log writes.

    Never touches lead scheduling state. Returns a short action string
    for logging and tests.
    """

    def __init__(self, store: DialerStore):
        self._store = store

    async def handle_call_event(self, event: TelephonyEvent) -> str:
        payload = event.payload
        call_control_id = payload.get("call_control_id")
        if not call_control_id:
            logger.warning(f"Call event {event.event_type} without call_control_id, ignoring")
            return "ignored"

        if event.event_type == "call.initiated":
            return await self._on_initiated(call_control_id, event)

        if event.event_type in ("call.ringing", "call.answered", "call.bridged"):
            status = map_call_event_to_status(event.event_type)
            found = await self._store.update_call_log(call_control_id, {"status": status})
            return self._updated(found, call_control_id, status)

        if event.event_type == "call.hangup":
            return await self._on_hangup(call_control_id, payload)

        if event.event_type == "call.recording.saved":
            url = recording_url(payload)
            if not url:
                return "ignored"
            found = await self._store.update_call_log(call_control_id, {
                "recording_url": url,
                "recording_id": payload.get("recording_id"),
            })
            return self._updated(found, call_control_id, "recording")

        if event.event_type == "call.machine.detection.ended":
            return await self._merge_metadata(call_control_id, {"amd_result": payload.get("result")})

        logger.info(f"Unhandled call event type: {event.event_type}")
        return "ignored"

    async def handle_sms_event(self, event: TelephonyEvent) -> str:
        status = map_sms_event(event)
        if status is None:
            logger.info(f"Unhandled SMS event type: {event.event_type}")
            return "ignored"

        payload = event.payload
        if status != SmsStatus.RECEIVED:
            logger.info(f"Outbound SMS {payload.get('id')} status: {status}")
            return status

        from_number = sms_from_number(payload)
        text = payload.get("text") or ""
        if not from_number or not text:
            return "ignored"

        lead_id = await self._store.find_lead_id_by_phone(from_number)
        await self._store.create_sms_message(SmsMessage(
            provider_message_id=payload.get("id"),
            direction="inbound",
            from_number=from_number,
            to_number=sms_to_number(payload),
            body=text,
            status=status,
            lead_id=lead_id,
        ))
        logger.info(f"Inbound SMS from {from_number} stored (lead: {lead_id or 'unknown'})")
        return "stored"

    async def _on_initiated(self, call_control_id: str, event: TelephonyEvent) -> str:
        payload = event.payload
        direction = call_direction(payload)
        from_number = payload.get("from")
        to_number = payload.get("to")

        # Inbound calls are matched on the caller, outbound on the callee
        match = from_number if direction == "inbound" else to_number
        lead_id = await self._store.find_lead_id_by_phone(match) if match else None

        await self._store.create_call_log(CallLog(
            call_control_id=call_control_id,
            call_session_id=payload.get("call_session_id"),
            call_leg_id=payload.get("call_leg_id"),
            direction=direction,
            from_number=from_number,
            to_number=to_number,
            status=CallLogStatus.INITIATED,
            lead_id=lead_id,
            metadata={"initiated_event": payload},
        ))
        return "created"

    async def _on_hangup(self, call_control_id: str, payload: Dict[str, Any]) -> str:
        status = map_hangup_cause(payload.get("hangup_cause"))
        found = await self._store.update_call_log(call_control_id, {
            "status": status,
            "duration_seconds": call_duration_seconds(payload.get("start_time"), payload.get("end_time")),
            "metadata": {
                "hangup_cause": payload.get("hangup_cause"),
                "hangup_source": payload.get("hangup_source"),
                "start_time": payload.get("start_time"),
                "end_time": payload.get("end_time"),
            },
        })
        return self._updated(found, call_control_id, status)

    async def _merge_metadata(self, call_control_id: str, extra: Dict[str, Any]) -> str:
        existing = await self._store.get_call_log(call_control_id)
        if existing is None:
            return self._updated(False, call_control_id, "metadata")
        found = await self._store.update_call_log(
            call_control_id,
            {"metadata": {**existing.metadata, **extra}},
        )
        return self._updated(found, call_control_id, "metadata")

    @staticmethod
    def _updated(found: bool, call_control_id: str, what: Optional[str]) -> str:
        if not found:
            logger.warning(f"No call log for {call_control_id} while applying {what}")
            return "missing"
        return "updated"
