from dotenv import load_dotenv
load_dotenv() # Load .env file at the very beginning

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app import config
from app.db import init_db, ensure_indexes
from app.routes import schedules, time_slots, shift_cancellations, notifications, settings, roster, health
from app.services.cancellation_cleanup import start_cancellation_cleanup, stop_cancellation_cleanup
import logging
from app.middleware.rate_limiter import RateLimiterMiddleware
from app.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Employee Scheduling System API",
    description="Shift booking against capacity-limited time slots, admin approval and peer shift cancellation",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

@app.on_event("startup")
async def startup_event():
    """Initialize services on startup"""
    await ensure_indexes()
    if config.ENABLE_CLEANUP_SERVICE:
        await start_cancellation_cleanup()
    logger.info("Application startup completed")

@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup services on shutdown"""
    await stop_cancellation_cleanup()
    logger.info("Application shutdown completed")

# CORS: an explicit origin list is required when allow_credentials=True
# Multiple origins can be provided via the CORS_ORIGINS environment variable, comma-separated.
logger.debug(f"Configuring CORS for origins: {config.CORS_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Basic IP rate limiting (configurable via RATE_LIMIT / RATE_LIMIT_WINDOW env vars)
app.add_middleware(RateLimiterMiddleware)

# Add error handler middleware (after CORS so errors get CORS headers)
app.add_middleware(ErrorHandlerMiddleware)
register_exception_handlers(app)

# Initialize Database
init_db(app)

# Include health check routes (comprehensive monitoring)
app.include_router(health.router, tags=["Health"])

@app.get("/")
async def root():
    return {
        "message": "Welcome to Employee Scheduling System API",
        "docs": "/docs",
        "health": "/health"
    }

# Include routers with proper /api prefix
app.include_router(schedules.router, prefix="/api/schedules", tags=["Schedules"])
app.include_router(time_slots.router, prefix="/api/time-slots", tags=["Time Slots"])
app.include_router(shift_cancellations.router, prefix="/api/shift-cancellations", tags=["Shift Cancellations"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(settings.router, prefix="/api/settings", tags=["Settings"])
app.include_router(roster.router, prefix="/api/roster", tags=["Roster"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
