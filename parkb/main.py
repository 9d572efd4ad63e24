import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from parkb.api.v1.router import api_router
from parkb.config import settings
from parkb.core.clock import SystemClock
from parkb.core.facility import Facility
from parkb.database import async_session_maker, init_db
from parkb.services import spots as spot_service
from parkb.services.scheduler import AutoCancellationScheduler

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    async with async_session_maker() as db:
        await spot_service.seed_spots(db, settings.total_spots)
        await db.commit()

    facility = Facility(settings=settings, clock=SystemClock(), session_maker=async_session_maker)
    app.state.facility = facility

    scheduler = AutoCancellationScheduler(facility)
    if settings.scheduler_enabled:
        scheduler.start()
    logger.info(f"{settings.app_name} started ({settings.environment})")
    yield
    await scheduler.stop()


app = FastAPI(
    title=settings.app_name,
    description="Parking spot allocation, reservation and session API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


def run():
    import uvicorn

    uvicorn.run(
        "parkb.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
