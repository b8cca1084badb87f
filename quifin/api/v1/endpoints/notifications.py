"""
Notification gateway diagnostics.
"""
from typing import Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from quifin.api.deps import get_reminder_scheduler
from quifin.jobs.reminder_scheduler import ReminderScheduler
from quifin.models.schemas.base import ResponseBase
from quifin.models.schemas.notifications import NotificationTestRequest, NotificationTestResult
from quifin.services.notification_gateway import DeliveryError, GatewayConfigError, NotificationSettings
from quifin.services.reminder_engine import send_test_notification
from quifin.utils import get_logger

router = APIRouter()
logger = get_logger(__name__)

@router.post(
    "/test",
    response_model=ResponseBase,
    summary="Send a test notification"
)
async def send_test(
    request: Request,
    payload: Optional[NotificationTestRequest] = Body(None),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler)
) -> ResponseBase:
    """Send one fixed message to the stored gateway settings, or to the unsaved ones in the body.

    Unlike the daily sweep, configuration and delivery problems are returned
    to the caller as a 400 with the reason.
    """
    request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID", "unknown")
    scheduler.ensure_started()

    override = None
    if payload is not None:
        override = NotificationSettings(
            url=payload.ntfy_url,
            topic=payload.ntfy_topic,
            token=payload.ntfy_bearer_token,
        )

    try:
        sent = await send_test_notification(
            scheduler.store,
            scheduler.gateway,
            override=override,
            time_zone=scheduler.time_zone,
        )
    except (GatewayConfigError, DeliveryError) as e:
        logger.warning(
            "Test notification failed",
            error=str(e),
            status_code=getattr(e, "status", None),
            request_id=request_id
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Failed to send test notification: {e}")

    result = NotificationTestResult(target_url=sent["target_url"])
    return ResponseBase(
        success=True,
        message=f"Test notification sent to {result.target_url}.",
        data=result.model_dump()
    )
