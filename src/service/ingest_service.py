"""업로드 수집 오케스트레이터.

요청 처리(동기):
    1. intake에서 구조 검증 (실패 시 4xx, 작업 생성 안 함)
    2. 필드 정규화 → 워커 슬롯 확보 → 임시 레코드 저장 → 상태 processing
    3. upload id를 바로 응답

백그라운드 처리(process_upload):
    파생 에셋 계산 → 원본/썸네일 업로드 → (선택) 장르 분류
    → 레코드 갱신 → 상태 completed
    어느 단계든 예외가 나면 상태 failed. 자동 재시도는 없다.
"""

import math

from loguru import logger
from sqlalchemy.engine import Engine
from sqlmodel import Session

from core.config import settings
from core.exceptions import DerivedAssetError, StorageError, UploadValidationError
from model.media import DerivedAssets, MediaRecord
from model.upload_job import IngestJob, JobStatus, new_upload_id
from processor.fingerprint import compute_fingerprints
from processor.histogram import compute_histogram
from processor.placeholder import encode_placeholder
from processor.thumbnail import THUMBNAIL_MAX_SIZE, THUMBNAIL_QUALITY, create_thumbnail
from processor.worker_pool import IngestWorkerPool
from service import media_store
from service.classifier import GenreClassifier
from service.intake import ParsedUpload
from service.object_store import ObjectStore, build_object_keys
from service.status_tracker import UploadStatusTracker
from utility.timer import timer

# 폼 필드 이름 → 레코드 컬럼
TEXT_FIELDS = {
    "title": "title",
    "description": "description",
    "location": "location",
    "locationName": "location_name",
    "cameraModel": "camera_model",
    "aperture": "aperture",
    "focalLength": "focal_length",
    "iso": "iso",
    "shutterSpeed": "shutter_speed",
    "captureTime": "capture_time",
}

# 컬럼이 없는 필드는 메타데이터 JSON으로만 저장한다
METADATA_TEXT_FIELDS = (
    "lensModel",
    "exposureBias",
    "exposureProgram",
    "exposureMode",
    "meteringMode",
    "whiteBalance",
    "flash",
    "colorSpace",
    "notes",
)


def normalize_text(value: str | None) -> str:
    return (value or "").strip()


def parse_dimension(fields: dict[str, str], name: str) -> int:
    try:
        value = float(fields.get(name, ""))
    except ValueError:
        value = math.nan
    if not math.isfinite(value) or value <= 0:
        raise UploadValidationError(f"{name} 값은 0보다 큰 숫자여야 합니다")
    return max(1, round(value))


def parse_coordinate(raw: str | None) -> float | None:
    raw = normalize_text(raw)
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def build_provisional_record(upload: ParsedUpload, upload_id: str) -> MediaRecord:
    """폼 필드로 임시 레코드를 만든다. 파생 에셋 필드는 비워 둔다."""
    fields = upload.fields
    columns = {column: normalize_text(fields.get(name)) for name, column in TEXT_FIELDS.items()}
    metadata = {name: normalize_text(fields.get(name)) for name in METADATA_TEXT_FIELDS}
    metadata["uploadId"] = upload_id
    metadata["processingStatus"] = JobStatus.PROCESSING.value

    return MediaRecord(
        upload_id=upload_id,
        original_name=upload.filename,
        width=parse_dimension(fields, "width"),
        height=parse_dimension(fields, "height"),
        latitude=parse_coordinate(fields.get("latitude")),
        longitude=parse_coordinate(fields.get("longitude")),
        processing_status=JobStatus.PROCESSING.value,
        metadata_json=media_store.dump_metadata(metadata),
        **columns,
    )


def accept_upload(
    upload: ParsedUpload,
    session: Session,
    engine: Engine,
    store: ObjectStore,
    tracker: UploadStatusTracker,
    pool: IngestWorkerPool,
    classifier: GenreClassifier | None = None,
) -> MediaRecord:
    """임시 레코드를 저장하고 백그라운드 작업을 띄운 뒤 바로 반환한다."""
    upload_id = new_upload_id()
    record = build_provisional_record(upload, upload_id)

    pool.reserve()
    try:
        record = media_store.create(session, record)
        tracker.start(upload_id)
    except Exception:
        pool.release()
        raise

    job = IngestJob(
        upload_id=upload_id,
        record_id=record.id,
        filename=upload.filename,
        content_type=upload.content_type,
        data=upload.data,
    )
    try:
        pool.submit(process_upload, job, engine, store, tracker, classifier)
    except Exception:
        # 작업을 못 넘겼으면 processing으로 남기지 않는다
        tracker.fail(upload_id)
        _mark_failed(engine, job)
        raise
    logger.info(f"Accepted upload {upload_id} as media #{record.id} ({len(upload.data)} bytes)")
    return record


def build_derived_assets(
    job: IngestJob,
    store: ObjectStore,
    thumbnail_max_size: int = THUMBNAIL_MAX_SIZE,
    thumbnail_quality: int = THUMBNAIL_QUALITY,
) -> DerivedAssets:
    """파생 에셋을 계산하고 원본/썸네일을 업로드한다.

    썸네일 생성이나 업로드가 실패하면 썸네일 URL = 원본 URL.
    원본 업로드 실패(StorageError)는 그대로 올린다.
    """
    fingerprints = compute_fingerprints(job.data)
    histogram = compute_histogram(job.data)

    try:
        thumbnail = create_thumbnail(job.data, thumbnail_max_size, thumbnail_quality)
    except DerivedAssetError as exc:
        logger.warning(f"[{job.upload_id}] {exc}; falling back to original image")
        thumbnail = None

    placeholder = encode_placeholder(thumbnail.data if thumbnail else job.data)

    keys = build_object_keys(job.filename)
    image_url = store.upload(keys.original, job.data, job.content_type)

    thumbnail_url = image_url
    if thumbnail:
        try:
            thumbnail_url = store.upload(keys.thumbnail, thumbnail.data, thumbnail.content_type)
        except StorageError as exc:
            logger.warning(f"[{job.upload_id}] Thumbnail upload failed: {exc}; using original URL")

    return DerivedAssets(
        image_url=image_url,
        thumbnail_url=thumbnail_url,
        content_hash=fingerprints.content_hash,
        perceptual_hash=fingerprints.perceptual_hash,
        placeholder=placeholder,
        histogram=histogram,
    )


def classify_safely(
    classifier: GenreClassifier | None, job: IngestJob, image_url: str
) -> dict | None:
    if classifier is None:
        return None
    try:
        result = classifier.classify(image_url)
    except Exception as exc:
        logger.warning(f"[{job.upload_id}] Genre classification failed: {exc}")
        return None
    if not result:
        return None
    return result.to_metadata() | {"label": result.label}


def process_upload(
    job: IngestJob,
    engine: Engine,
    store: ObjectStore,
    tracker: UploadStatusTracker,
    classifier: GenreClassifier | None = None,
) -> JobStatus:
    """백그라운드 워커에서 실행된다. 예외를 밖으로 내보내지 않고 상태로만 알린다."""
    try:
        with timer(f"ingest {job.upload_id}"):
            assets = build_derived_assets(
                job, store, settings.THUMBNAIL_MAX_SIZE, settings.THUMBNAIL_QUALITY
            )
            genre = classify_safely(classifier, job, assets.image_url)

            metadata_patch = assets.to_metadata()
            metadata_patch["processingStatus"] = JobStatus.COMPLETED.value
            if genre:
                metadata_patch["genre"] = genre

            with Session(engine) as session:
                media_store.update(
                    session,
                    job.record_id,
                    {
                        "image_url": assets.image_url,
                        "thumbnail_url": assets.thumbnail_url,
                        "genre": genre["label"] if genre else "",
                        "processing_status": JobStatus.COMPLETED.value,
                    },
                    metadata_patch,
                )
    except Exception:
        logger.exception(f"Upload {job.upload_id} failed")
        tracker.fail(job.upload_id)
        _mark_failed(engine, job)
        return JobStatus.FAILED

    tracker.complete(job.upload_id)
    logger.info(f"Upload {job.upload_id} completed (media #{job.record_id})")
    return JobStatus.COMPLETED


def _mark_failed(engine: Engine, job: IngestJob) -> None:
    """파생 에셋은 건드리지 않고 상태 플래그만 failed로 남긴다."""
    try:
        with Session(engine) as session:
            media_store.update(
                session,
                job.record_id,
                {"processing_status": JobStatus.FAILED.value},
                {"processingStatus": JobStatus.FAILED.value},
            )
    except Exception:
        logger.exception(f"Could not flag media #{job.record_id} as failed")


def resolve_status(session: Session, tracker: UploadStatusTracker, upload_id: str) -> JobStatus:
    """트래커를 먼저 보고, 없으면 레코드에 저장된 상태로 다시 구한다."""
    status = tracker.get(upload_id)
    if status is not JobStatus.UNKNOWN:
        return status

    record = media_store.find_by_upload_id(session, upload_id)
    if not record:
        return JobStatus.UNKNOWN

    try:
        persisted = JobStatus(record.processing_status)
    except ValueError:
        persisted = JobStatus.COMPLETED
    if persisted is JobStatus.UNKNOWN:
        persisted = JobStatus.COMPLETED
    tracker.set(upload_id, persisted)
    return persisted
