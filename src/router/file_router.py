from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel
from sqlalchemy.engine import Engine
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from core.config import settings
from core.dependencies import (
    get_classifier,
    get_object_store,
    get_tracker,
    get_worker_pool,
    require_admin,
)
from core.exceptions import UploadValidationError
from model.database import get_engine, get_session
from model.upload_job import JobStatus
from processor.placeholder import decode_placeholder
from processor.worker_pool import IngestWorkerPool
from service import ingest_service, media_store
from service.classifier import GenreClassifier
from service.intake import parse_upload
from service.object_store import ObjectStore
from service.status_tracker import UploadStatusTracker

router = APIRouter(prefix="/api/files", tags=["files"])


# --- 응답 스키마 ---

class UploadAccepted(BaseModel):
    uploadId: str
    id: int


class UploadStatusResponse(BaseModel):
    status: JobStatus


# --- 엔드포인트 ---

@router.post("", response_model=UploadAccepted, status_code=status.HTTP_202_ACCEPTED)
async def upload_file(
    request: Request,
    _admin: str = Depends(require_admin),
    session: Session = Depends(get_session),
    engine: Engine = Depends(get_engine),
    store: ObjectStore = Depends(get_object_store),
    tracker: UploadStatusTracker = Depends(get_tracker),
    pool: IngestWorkerPool = Depends(get_worker_pool),
    classifier: GenreClassifier | None = Depends(get_classifier),
):
    """이미지 업로드 수락.

    임시 레코드만 저장하고 바로 202를 반환한다. 썸네일/히스토그램 등은
    백그라운드에서 처리되며 결과는 /api/files/status로 확인한다.
    """
    upload = await parse_upload(request, settings.MAX_UPLOAD_BYTES)
    record = await run_in_threadpool(
        ingest_service.accept_upload,
        upload,
        session,
        engine,
        store,
        tracker,
        pool,
        classifier,
    )
    return UploadAccepted(uploadId=record.upload_id, id=record.id)


@router.get("/status", response_model=UploadStatusResponse)
def get_upload_status(
    upload_id: str = Query("", alias="uploadId"),
    _admin: str = Depends(require_admin),
    session: Session = Depends(get_session),
    tracker: UploadStatusTracker = Depends(get_tracker),
):
    """처리 상태 조회. 모르는 id는 에러가 아니라 status="unknown"."""
    upload_id = upload_id.strip()
    if not upload_id:
        raise UploadValidationError("uploadId가 필요합니다")
    return UploadStatusResponse(
        status=ingest_service.resolve_status(session, tracker, upload_id)
    )


@router.get("/{record_id}")
def get_file(
    record_id: int,
    _admin: str = Depends(require_admin),
    session: Session = Depends(get_session),
):
    record = media_store.get_or_raise(session, record_id)
    metadata = media_store.parse_metadata(record.metadata_json)
    preview = decode_placeholder(metadata.get("thumbhash"))
    return {
        **record.model_dump(exclude={"metadata_json"}),
        "metadata": metadata,
        "placeholderAspectRatio": preview.aspect_ratio if preview else None,
    }
