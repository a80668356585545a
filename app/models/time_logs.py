from pydantic import BaseModel, Field, field_validator, model_validator
from bson import ObjectId
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

UTC = timezone.utc


class LogType(str, Enum):
    REGULAR = "regular"
    OVERTIME = "overtime"
    EXTENDED_OVERTIME = "extended_overtime"


class OvertimeStatus(str, Enum):
    NONE = "none"  # regular logs only
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LogStatus(str, Enum):
    PENDING = "pending"  # clocked in, no time out yet
    COMPLETED = "completed"


OVERTIME_LOG_TYPES = (LogType.OVERTIME, LogType.EXTENDED_OVERTIME)


class TimeLog(BaseModel):
    id: Optional[str] = Field(default=None, alias="_id")
    user_id: str
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    log_type: LogType = LogType.REGULAR
    overtime_status: OvertimeStatus = OvertimeStatus.NONE
    status: LogStatus = LogStatus.PENDING
    notes: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @field_validator("id", "user_id", "approved_by", mode="before")
    def stringify_object_ids(cls, v):
        if isinstance(v, ObjectId):
            return str(v)
        return v

    @field_validator("time_in", "time_out", "approved_at", "created_at", "updated_at")
    def assume_utc(cls, v):
        # Mongo hands back naive datetimes unless the client is tz aware
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @field_validator("overtime_status", mode="before")
    def none_to_default(cls, v):
        return OvertimeStatus.NONE if v is None else v

    @model_validator(mode="after")
    def normalize_overtime_status(self):
        if self.log_type == LogType.REGULAR:
            self.overtime_status = OvertimeStatus.NONE
        elif self.overtime_status == OvertimeStatus.NONE:
            self.overtime_status = OvertimeStatus.PENDING
        return self

    @property
    def is_overtime(self) -> bool:
        return self.log_type in OVERTIME_LOG_TYPES

    @property
    def is_open(self) -> bool:
        return self.time_in is not None and self.time_out is None

    def to_document(self) -> dict:
        """Document to insert into the time_logs collection (no _id)."""
        document = self.model_dump(exclude={"id"})
        return {key: value.value if isinstance(value, Enum) else value for key, value in document.items()}
