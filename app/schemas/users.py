from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional
from datetime import date, datetime


class UserOut(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    role: str
    school: Optional[str] = None
    department: Optional[str] = None
    required_hours: Optional[float] = 0
    internship_start: Optional[datetime] = None
    internship_end: Optional[datetime] = None


class InternOut(UserOut):
    completed_hours: float = 0


class CreateIntern(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    password: Optional[str] = None
    school: Optional[str] = None
    department: Optional[str] = None
    required_hours: float = 0
    internship_start: Optional[datetime] = None
    internship_end: Optional[datetime] = None

    @field_validator('internship_start', 'internship_end', mode='before')
    def convert_date_to_datetime(cls, v):
        # Mongo stores dates as datetimes
        if v is None or isinstance(v, datetime):
            return v
        if isinstance(v, str) and len(v) == 10:
            v = date.fromisoformat(v)
        if isinstance(v, date):
            return datetime.combine(v, datetime.min.time())
        return v
