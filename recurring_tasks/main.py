"""Main FastAPI application for the recurring task engine."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from recurring_tasks import config
from recurring_tasks.db.config import engine
from recurring_tasks.db.init import init_db
from recurring_tasks.exceptions import (
    DuplicateKey,
    InvalidArgument,
    InvalidState,
    PersistenceFailure,
    RecurrenceError,
    TaskNotFound,
)
from recurring_tasks.routers import internal_router, tasks_router
from recurring_tasks.services.maintenance import MaintenanceScheduler

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Recurring Task Engine API",
    description="Recurring task generation and reconciliation for the Todo application",
    version="1.0.0",
)

maintenance_scheduler = MaintenanceScheduler()

_STATUS_CODES = {
    InvalidArgument: status.HTTP_400_BAD_REQUEST,
    InvalidState: status.HTTP_409_CONFLICT,
    DuplicateKey: status.HTTP_409_CONFLICT,
    TaskNotFound: status.HTTP_404_NOT_FOUND,
    PersistenceFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.exception_handler(RecurrenceError)
async def recurrence_error_handler(request: Request, exc: RecurrenceError):
    """Map engine errors to HTTP responses."""
    status_code = next(
        (code for error_type, code in _STATUS_CODES.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.on_event("startup")
async def startup_event():
    """Initialize database and start the maintenance scheduler."""
    try:
        await init_db()
        logger.info("Database tables initialized successfully.")
    except Exception as e:
        logger.warning(f"Database initialization failed: {e}")
        logger.warning("Server will continue but database operations may fail.")

    if config.ENABLE_MAINTENANCE_SCHEDULER:
        maintenance_scheduler.start()
    else:
        logger.info("Maintenance scheduler disabled")


@app.on_event("shutdown")
async def shutdown_event():
    maintenance_scheduler.shutdown()
    await engine.dispose()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "maintenance_scheduler": maintenance_scheduler.running,
    }


app.include_router(tasks_router, prefix="/api")  # Task endpoints: /api/{user_id}/tasks
app.include_router(internal_router, prefix="/internal")  # Maintenance endpoints: /internal/...


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "recurring_tasks.main:app",
        host="0.0.0.0",
        port=8000,
    )
