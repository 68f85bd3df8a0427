"""
Webhooks API Endpoints
Handles incoming call and SMS lifecycle webhooks from the telephony provider

The provider retries anything that is not a 200, so every handler
answers 200 and reports problems in the body instead.
"""
import logging

from fastapi import APIRouter, Request, Depends

from app.api.v1.dependencies import get_telephony_event_handler
from app.domain.exceptions import InvalidArgumentError
from app.domain.services.telephony_events import TelephonyEventHandler
from app.domain.services.webhook_normalizer import parse_webhook_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/telephony", tags=["webhooks"])


@router.post("/call-events")
async def telephony_call_events(
    request: Request,
    handler: TelephonyEventHandler = Depends(get_telephony_event_handler),
):
    """
    Handle call control events.

    - call.initiated: create the call log, linked to a lead by phone number
    - call.ringing / call.answered / call.bridged: status update
    - call.hangup: final status from the hangup cause, duration
    - call.recording.saved: recording URL
    - call.machine.detection.ended: AMD result into metadata
    """
    try:
        event = parse_webhook_event(await request.json())
        logger.info(
            f"Telephony call event: {event.event_type} "
            f"call_control_id={event.payload.get('call_control_id')}"
        )
        action = await handler.handle_call_event(event)
        return {"received": True, "action": action}

    except InvalidArgumentError as e:
        logger.warning(f"Malformed call webhook: {e}")
        return {"received": True, "error": str(e)}
    except Exception as e:
        logger.error(f"Error in telephony_call_events: {e}", exc_info=True)
        return {"received": True, "error": "Processing failed"}


@router.post("/sms")
async def telephony_sms_events(
    request: Request,
    handler: TelephonyEventHandler = Depends(get_telephony_event_handler),
):
    """
    Handle SMS events.

    Inbound messages are stored (linked to a lead when the sender is
    known); sent/finalized events are logged with their delivery status.
    """
    try:
        event = parse_webhook_event(await request.json())
        logger.info(f"Telephony SMS event: {event.event_type}")
        action = await handler.handle_sms_event(event)
        return {"received": True, "action": action}

    except InvalidArgumentError as e:
        logger.warning(f"Malformed SMS webhook: {e}")
        return {"received": True, "error": str(e)}
    except Exception as e:
        logger.error(f"Error in telephony_sms_events: {e}", exc_info=True)
        return {"received": True, "error": "Processing failed"}
