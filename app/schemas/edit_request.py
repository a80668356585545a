from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime

from models.edit_requests import EditRequestAction
from utils.time_utils import parse_timestamp


def _check_order(time_in: Optional[datetime], time_out: Optional[datetime]) -> None:
    if time_in is not None and time_out is not None and time_out <= time_in:
        raise ValueError("Requested time out must be after time in")


class CreateEditRequest(BaseModel):
    log_id: str
    requested_time_in: Optional[datetime] = None
    requested_time_out: Optional[datetime] = None
    reason: Optional[str] = None

    @field_validator("requested_time_in", "requested_time_out")
    def assume_utc(cls, v):
        # naive times are UTC, so they compare with aware ones
        return parse_timestamp(v)

    @model_validator(mode="after")
    def check_times(self):
        if self.requested_time_in is None and self.requested_time_out is None:
            raise ValueError("Provide a new time in or time out")
        _check_order(self.requested_time_in, self.requested_time_out)
        return self


class CreateSessionEditRequest(BaseModel):
    log_ids: List[str] = Field(..., min_length=1)
    requested_time_in: datetime
    requested_time_out: datetime
    reason: Optional[str] = None

    @field_validator("requested_time_in", "requested_time_out")
    def assume_utc(cls, v):
        return parse_timestamp(v)

    @model_validator(mode="after")
    def check_times(self):
        _check_order(self.requested_time_in, self.requested_time_out)
        return self


class EditRequestActionBody(BaseModel):
    action: EditRequestAction


class BatchEditAction(BaseModel):
    request_ids: List[str] = Field(..., min_length=1)
    action: EditRequestAction
    as_group: bool = False  # apply to all ids as one unit instead of one by one
