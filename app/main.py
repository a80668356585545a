import logging
from contextlib import asynccontextmanager
from cron_jobs import scheduler

import uvicorn

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from routers import auth
from routers import time_logs, overtime, edit_requests, edit_request_management, intern_management
from config import settings

PROD_MODE = settings.PRODUCTION_MODE

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENABLE_SCHEDULER and not scheduler.running:
        scheduler.start()
    yield
    if scheduler.running:
        scheduler.shutdown(wait=False)


app = FastAPI(title=settings.PROJECT_TITLE, lifespan=lifespan)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(time_logs.router, prefix="/time-logs", tags=["time_logs"])
app.include_router(edit_requests.router, prefix="/edit-requests", tags=["edit_requests"])
app.include_router(overtime.router, prefix="/admin", tags=["overtime"])
app.include_router(edit_request_management.router, prefix="/admin/edit-requests", tags=["edit_request_management"])
app.include_router(intern_management.router, prefix="/admin", tags=["intern_management"])

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def index():
    return {"message": "Hello InternHQ"}


if __name__ == "__main__":
    if PROD_MODE == True:
        # Run Uvicorn without reload in production
        uvicorn.run("main:app", host="0.0.0.0", port=11000, reload=False)

    else:
        # Run Uvicorn with reload=True in development mode
        uvicorn.run("main:app", host="0.0.0.0", port=11000, reload=True)
