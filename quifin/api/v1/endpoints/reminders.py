"""
Reminder sweep endpoints.
"""
import time
from fastapi import APIRouter, Depends, HTTPException, Request
from quifin.api.deps import get_reminder_scheduler, require_non_production
from quifin.jobs.reminder_scheduler import ReminderScheduler
from quifin.models.schemas.base import ResponseBase
from quifin.models.schemas.reminders import SchedulerSnapshot
from quifin.utils import get_logger, log_business_event, log_performance

router = APIRouter()
logger = get_logger(__name__)

@router.post(
    "/run",
    response_model=ResponseBase,
    summary="Run the reminder check now (development only)",
    dependencies=[Depends(require_non_production)]
)
async def run_reminder_check(
    request: Request,
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler)
) -> ResponseBase:
    """Run one sweep immediately, or join the sweep already in progress.

    Per-candidate problems are reported inside the result (counts and
    warnings), not as HTTP errors.
    """
    start_time = time.time()
    request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID", "unknown")

    logger.info("Manual reminder check triggered", request_id=request_id)

    try:
        scheduler.ensure_started()
        result = await scheduler.run_now()
    except Exception as e:
        logger.error(
            "Manual reminder check failed",
            error=str(e),
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(status_code=500, detail=f"Failed to run reminder check: {e}")

    log_business_event(
        event_type="manual_reminder_check",
        details={
            "sent_count": result.sent_count,
            "skipped_count": result.skipped_count,
            "failed_count": result.failed_count,
        },
        request_id=request_id
    )
    log_performance(
        operation="run_reminder_check",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"candidates_checked": result.candidates_checked}
    )
    return ResponseBase(
        success=True,
        message=f"Reminder check completed: {result.sent_count} sent, "
                f"{result.skipped_count} skipped, {result.failed_count} failed",
        data=result.model_dump(mode="json")
    )

@router.get(
    "/scheduler",
    response_model=SchedulerSnapshot,
    summary="Reminder scheduler state"
)
async def get_scheduler_state(
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler)
) -> SchedulerSnapshot:
    return scheduler.snapshot()
