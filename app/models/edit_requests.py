from pydantic import BaseModel, Field, field_validator
from bson import ObjectId
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

UTC = timezone.utc


class EditRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EditRequestAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REVERT = "revert"


class LogSnapshot(BaseModel):
    """Copy of a time log as it was before an edit request was applied."""
    log_id: Optional[str] = None
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    log_type: str = "regular"
    overtime_status: Optional[str] = None
    status: str = "completed"
    notes: Optional[str] = None


class EditLogRequest(BaseModel):
    id: Optional[str] = Field(default=None, alias="_id")
    user_id: str
    log_id: Optional[str] = None
    log_ids: List[str] = Field(default_factory=list)  # continuous-session requests
    requested_time_in: Optional[datetime] = None
    requested_time_out: Optional[datetime] = None
    original_time_in: Optional[datetime] = None
    original_time_out: Optional[datetime] = None
    reason: Optional[str] = None
    status: EditRequestStatus = EditRequestStatus.PENDING
    is_continuous_session: bool = False
    original_logs: List[LogSnapshot] = Field(default_factory=list)
    applied_log_ids: List[str] = Field(default_factory=list)
    requested_by: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    class Config:
        populate_by_name = True

    @field_validator("id", "user_id", "log_id", "requested_by", "reviewed_by", mode="before")
    def stringify_object_ids(cls, v):
        if isinstance(v, ObjectId):
            return str(v)
        return v

    @field_validator("log_ids", "applied_log_ids", mode="before")
    def stringify_id_lists(cls, v):
        if v is None:
            return []
        return [str(item) for item in v]

    @field_validator("requested_time_in", "requested_time_out", "original_time_in",
                     "original_time_out", "reviewed_at", "created_at")
    def assume_utc(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def target_log_ids(self) -> List[str]:
        if self.log_ids:
            return list(self.log_ids)
        return [self.log_id] if self.log_id else []

    def to_document(self) -> dict:
        document = self.model_dump(exclude={"id"})
        return {key: value.value if isinstance(value, Enum) else value for key, value in document.items()}
