from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from core.config import settings
from model.database import create_db_and_tables
from processor.worker_pool import IngestWorkerPool
from service.classifier import HttpGenreClassifier
from service.status_tracker import UploadStatusTracker
from utility.logger import setup_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    # === 시작 ===
    setup_logger(settings.LOG_LEVEL)
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION}")

    create_db_and_tables()
    logger.info(f"Database ready ({settings.DATABASE_URL})")

    if not settings.storage_configured:
        logger.warning("S3 storage is not configured; uploads will be rejected")

    app.state.settings = settings
    app.state.tracker = UploadStatusTracker(settings.STATUS_TRACKER_MAX_ENTRIES)
    app.state.worker_pool = IngestWorkerPool(
        workers=settings.INGEST_WORKERS, queue_size=settings.INGEST_QUEUE_SIZE
    )
    app.state.classifier = HttpGenreClassifier.from_settings(settings)
    logger.info(
        f"Ingest pool ready ({settings.INGEST_WORKERS} workers, "
        f"{app.state.worker_pool.capacity} slots)"
    )

    yield

    # === 종료 ===
    # 진행 중인 백그라운드 작업은 끝까지 실행한다 (중간 취소 없음)
    logger.info(f"Shutting down, waiting for {app.state.worker_pool.in_flight} ingest jobs")
    app.state.worker_pool.shutdown(wait=True)
    if app.state.classifier is not None:
        app.state.classifier.close()
