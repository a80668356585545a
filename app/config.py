from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_TITLE: str = "InternHQ DTR"
    MONGODB_URL: str
    DATABASE_NAME: str = "internhq"
    PRODUCTION_MODE: bool = False
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    TIMEZONE: str = "Asia/Manila"
    DAILY_REQUIRED_HOURS: float = 9
    MAX_OVERTIME_HOURS: float = 3
    SESSION_TOLERANCE_SECONDS: int = 60
    DAY_BOUNDARY_HOUR: int = 6  # local hour at which the DTR day rolls over
    LONG_LOG_SPLIT_HOURS: int = 24
    ENABLE_SCHEDULER: bool = True
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:5173"]

    class Config:
        env_file = ".env"

settings = Settings()
