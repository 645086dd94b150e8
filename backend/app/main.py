import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.db.base import init_db
from app.middleware.error_handling import setup_error_handling
from app.routers import health_router, review_router, scheduler_router
from app.services.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    logger.info(f"{settings.APP_NAME} started")
    yield
    if settings.SCHEDULER_ENABLED:
        stop_scheduler()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(title=f"{settings.APP_NAME} API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
setup_error_handling(app, debug=settings.DEBUG)

app.include_router(health_router.router)
app.include_router(review_router.router)
app.include_router(scheduler_router.router)


@app.get("/")
async def root():
    return {"message": f"{settings.APP_NAME} API"}
