"""
Dependencies for the application-owned reminder scheduler.
"""
from fastapi import HTTPException, Request, status
from quifin.config import is_production
from quifin.jobs.reminder_scheduler import ReminderScheduler

def get_reminder_scheduler(request: Request) -> ReminderScheduler:
    """
    Scheduler created by the application lifespan.

    Raises:
        HTTPException: 503 if the application has not set one up
    """
    scheduler = getattr(request.app.state, "reminder_scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminder scheduler not available"
        )
    return scheduler

def require_non_production() -> None:
    """Hide development-only endpoints in production deployments."""
    if is_production():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
