from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time

from .core.config import settings
from .core.database import AsyncSessionLocal, close_db_connections, init_models
from .core.exceptions import register_exception_handlers
from .core.logging import setup_logging
from .core.scheduler import build_attendance_scheduler
from .services.attendance_workflow_service import AttendanceRuleEngine
from .services.notification_service import NotificationDispatcher

from .routers import health, planning, attendance, workflows, promotions, news

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

dispatcher = NotificationDispatcher(max_pending=settings.notification_outbox_size)
rule_engine = AttendanceRuleEngine(AsyncSessionLocal, dispatcher)
scheduler = build_attendance_scheduler(rule_engine, settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Yggdrasil Planning API")

    if settings.auto_create_tables:
        await init_models()

    if settings.workflows_enabled:
        scheduler.start()

    yield

    logger.info("Shutting down Yggdrasil Planning API")
    await scheduler.stop()
    await close_db_connections()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Yggdrasil Planning API",
    description="Calendar planning, attendance tracking, promotions and school news",
    version=settings.app_version,
    lifespan=lifespan
)

app.state.dispatcher = dispatcher
app.state.rule_engine = rule_engine
app.state.scheduler = scheduler


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(f"{request.method} {request.url.path} - {process_time:.3f}s")
    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

register_exception_handlers(app)

app.include_router(health.router)
app.include_router(planning.router)
app.include_router(attendance.router)
app.include_router(workflows.router)
app.include_router(promotions.router)
app.include_router(news.router)


@app.get("/")
async def root():
    return {
        "success": True,
        "data": {
            "message": "Yggdrasil Planning API",
            "version": settings.app_version,
            "features": ["Calendar planning", "Attendance workflows", "Promotions", "News"],
            "status": "active",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("yggdrasil.main:app", host="0.0.0.0", port=8000, reload=True)
