"""
Pydantic schemas for reminder sweeps and the scheduler.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

class ReminderRunResult(BaseModel):
    """Report produced once per sweep. Never persisted."""
    run_at: datetime = Field(description="UTC instant the sweep started")
    time_zone: str = Field(description="IANA zone used to compute 'today'")
    windows_checked: int = Field(ge=0)
    candidates_checked: int = Field(ge=0)
    sent_count: int = Field(ge=0)
    skipped_count: int = Field(ge=0, description="Already ledgered, or no usable gateway configuration")
    failed_count: int = Field(ge=0)
    warnings: List[str] = Field(default_factory=list)

class SchedulerSnapshot(BaseModel):
    started: bool
    time_zone: str
    timer_armed: bool
    next_run_at: Optional[datetime] = None
    sweep_in_flight: bool
    last_result: Optional[ReminderRunResult] = None
