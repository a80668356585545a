from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import date, datetime

from models.time_logs import OvertimeStatus


def _decision(v: OvertimeStatus) -> OvertimeStatus:
    if v == OvertimeStatus.NONE:
        raise ValueError("Overtime status must be pending, approved or rejected")
    return v


class ClockOut(BaseModel):
    discard_overtime: bool = False
    overtime_note: Optional[str] = None


class OvertimeStatusUpdate(BaseModel):
    status: OvertimeStatus

    @field_validator("status")
    def not_none(cls, v):
        return _decision(v)


class BulkOvertimeAction(BaseModel):
    log_ids: List[str] = Field(..., min_length=1)
    status: OvertimeStatus

    @field_validator("status")
    def not_none(cls, v):
        return _decision(v)


class TodayStatus(BaseModel):
    business_date: date
    is_clocked_in: bool
    has_timed_out_today: bool
    active_since: Optional[datetime] = None
    today_duration: str
    hours_today: float
