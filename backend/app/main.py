import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from backend.app.api.v1.router import api_router
from backend.app.config import get_settings
from backend.app.database import SessionLocal, create_tables
from backend.app.services.purge_service import get_incomplete_purges, resume_incomplete_purges

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up application...")
    create_tables()

    # Finish any unmatch that was interrupted before it completed
    db = SessionLocal()
    try:
        resumed = resume_incomplete_purges(db)
        if resumed:
            logger.warning("Resumed %d interrupted purge(s)", len(resumed))
        stuck = get_incomplete_purges(db)
        if stuck:
            logger.error("%d purge(s) still incomplete after startup", len(stuck))
    finally:
        db.close()

    yield
    logger.info("Shutting down application...")

app = FastAPI(lifespan=lifespan)

# Include all API routes
app.include_router(api_router, prefix="/api/v1")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.app.main:app", host="0.0.0.0", port=8000, reload=True)
