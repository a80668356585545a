from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.edit_requests import EditLogRequest, EditRequestStatus
from models.time_logs import LogType, OvertimeStatus, TimeLog


class Session(BaseModel):
    logs: List[TimeLog] = Field(..., description="Constituent logs in chronological order.")
    session_type: LogType
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    is_continuous_session: bool = False
    is_active: bool = False
    is_overtime_session: bool = False
    overtime_status: OvertimeStatus = OvertimeStatus.NONE
    regular_hours: float = 0
    overtime_hours: float = 0

    @property
    def log_ids(self) -> List[str]:
        return [log.id for log in self.logs if log.id is not None]


class SessionTotals(BaseModel):
    total_regular_hours: float = 0
    total_overtime_hours: float = 0
    overall_overtime_status: OvertimeStatus = OvertimeStatus.NONE
    has_excess_regular_hours: bool = False


class Allocation(BaseModel):
    regular_hours: float = 0
    overtime_hours: float = 0
    extended_overtime_hours: float = 0

    @property
    def total_hours(self) -> float:
        return round(self.regular_hours + self.overtime_hours + self.extended_overtime_hours, 2)


class SessionSegment(BaseModel):
    """One persisted slice of a work span after it is split by type."""
    log_type: LogType
    time_in: datetime
    time_out: datetime


class DisplayLog(BaseModel):
    log: TimeLog
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    pending_request_id: Optional[str] = None

    @property
    def has_pending_edit(self) -> bool:
        return self.pending_request_id is not None


class DisplaySession(BaseModel):
    session: Session
    logs: List[DisplayLog]
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    has_pending_edit: bool = False


class SessionGroup(BaseModel):
    user_id: Optional[str] = None
    day: Optional[date] = None
    requests: List[EditLogRequest]
    all_request_ids: List[str]
    log_ids: List[str] = Field(default_factory=list)
    original_time_in: Optional[datetime] = None
    original_time_out: Optional[datetime] = None
    requested_time_in: Optional[datetime] = None
    requested_time_out: Optional[datetime] = None
    status: Optional[EditRequestStatus] = None  # None when the requests disagree
    is_continuous_session: bool = False
    is_orphan: bool = False


class DailyRecord(BaseModel):
    day: date
    sessions: List[Session]
    allocations: List[Allocation]
    totals: SessionTotals


class BatchResult(BaseModel):
    succeeded: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def error_count(self) -> int:
        return len(self.failed)
