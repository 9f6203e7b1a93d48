# mentorhub/main.py
import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mentorhub.config import settings
from mentorhub.database import Base, SessionLocal, engine
from mentorhub.errors import SchedulingError
from mentorhub.api import auth, availability, notification, session
from mentorhub.services.scheduling_service import SchedulingService

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def run_sweep_once() -> int:
    """Auto-complete due sessions in a fresh database session."""
    db = SessionLocal()
    try:
        return len(SchedulingService(db).sweep_auto_completions())
    finally:
        db.close()


async def _periodic_sweep(interval_seconds: int) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(run_sweep_once)
        except Exception:
            logger.exception("Periodic auto-completion sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables
    Base.metadata.create_all(bind=engine)

    task = None
    interval = settings.AUTO_COMPLETE_SWEEP_INTERVAL_SECONDS
    if interval > 0:
        logger.info("Periodic auto-completion sweep every %ss", interval)
        task = asyncio.create_task(_periodic_sweep(interval))
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task


configure_logging()

# Initialize FastAPI app
app = FastAPI(title="MentorHub Scheduling API", lifespan=lifespan)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:4200",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


# API routers
app.include_router(auth.router)          # /auth/*
app.include_router(availability.router)  # /availability/*
app.include_router(session.router)       # /sessions/*
app.include_router(notification.router)  # /notifications/*


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "message": "MentorHub API is running",
        "timezone": settings.PLATFORM_TIMEZONE,
    }
