import uvicorn
from fastapi import FastAPI

from core.config import settings
from core.error_handlers import app_exception_handler
from core.exceptions import AppException
from core.lifespan import lifespan
from core.middleware import RequestLoggingMiddleware
from router.file_router import router as file_router
import model.media  # noqa: F401  (테이블 등록)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="갤러리 미디어 수집 파이프라인: 업로드, 파생 에셋 생성, 처리 상태 조회",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_exception_handler(AppException, app_exception_handler)

app.include_router(file_router)


@app.get("/health")
async def health():
    pool = app.state.worker_pool
    return {
        "status": "ok",
        "storage_configured": settings.storage_configured,
        "ingest_in_flight": pool.in_flight,
        "ingest_capacity": pool.capacity,
        "tracked_uploads": len(app.state.tracker),
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        access_log=False,
    )
