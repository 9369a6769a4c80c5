from typing import Dict

from fastapi import FastAPI

from marketfolio.services.scheduler_service import scheduler, start_scheduler
from marketfolio.db.database import check_db_connection, init_db
from marketfolio.api.routes import router
from shared.config import logger

app = FastAPI(title="marketfolio")
app.include_router(router)


@app.on_event("startup")
async def startup_event():
    logger.info("Starting up FastAPI application")
    await init_db()
    if not scheduler.running:
        start_scheduler()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """
    Shut down the scheduler on application shutdown.
    args: None
    return: None
    """
    if scheduler.running:
        scheduler.shutdown()


@app.get("/")
async def root() -> Dict[str, str]:
    """
    Serve the root endpoint of the application.
    args: None
    return: A dictionary containing a welcome message
    """
    logger.info("Root endpoint accessed")
    return {"message": "Welcome to marketfolio supported by FastAPI!"}


@app.get("/health")
async def health() -> Dict[str, bool | int]:
    return {
        "database": await check_db_connection(),
        "scheduler_running": scheduler.running,
        "job_count": len(scheduler.get_jobs()),
    }
