import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .db.session import create_schema, dispose_engine
from .logging_config import configure_logging
from .schedule_routes import router as schedule_router
from .scheduler import job_scheduler
from .syllabus_routes import router as syllabus_router
from .task_routes import router as task_router


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    if settings.auto_create_schema:
        create_schema()
        logger.info("Database schema ensured")
    if settings.scheduler_enabled:
        await job_scheduler.start()
    else:
        logger.info("Scheduler disabled; scheduled jobs will only run on demand")
    try:
        yield
    finally:
        if job_scheduler.running:
            await job_scheduler.shutdown()
        dispose_engine()


app = FastAPI(title="Syllabus Tracker Backend", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(task_router)
app.include_router(syllabus_router)
app.include_router(schedule_router)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "scheduler": "running" if job_scheduler.running else "stopped",
        "timezone": settings.scheduler_timezone,
        "active_timers": len(job_scheduler.active_job_ids),
    }
