"""미디어 레코드 영속화.

파이프라인은 create / update / find 세 가지 계약만 사용한다.
정식 컬럼 밖의 메타데이터는 metadata_json에 JSON으로 저장하고,
파싱에 실패하면 빈 dict로 취급한다.
"""

import json

from loguru import logger
from sqlmodel import Session, select

from core.exceptions import MediaNotFound
from model.media import MediaRecord


def parse_metadata(raw: str | None) -> dict:
    try:
        parsed = json.loads(raw or "{}")
    except (TypeError, ValueError):
        logger.warning("Unreadable metadata blob, treating as empty")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def dump_metadata(metadata: dict) -> str:
    return json.dumps(metadata, ensure_ascii=False)


def create(session: Session, record: MediaRecord) -> MediaRecord:
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def find(session: Session, record_id: int) -> MediaRecord | None:
    return session.get(MediaRecord, record_id)


def get_or_raise(session: Session, record_id: int) -> MediaRecord:
    record = find(session, record_id)
    if not record:
        raise MediaNotFound
    return record


def find_by_upload_id(session: Session, upload_id: str) -> MediaRecord | None:
    return session.exec(
        select(MediaRecord).where(MediaRecord.upload_id == upload_id)
    ).first()


def update(
    session: Session,
    record_id: int,
    patch: dict,
    metadata_patch: dict | None = None,
) -> MediaRecord:
    """컬럼 patch와 메타데이터 patch를 같은 행에 덮어쓴다. 행을 새로 만들지 않는다."""
    record = get_or_raise(session, record_id)
    for key, value in patch.items():
        if key not in MediaRecord.model_fields:
            raise KeyError(f"Unknown media field: {key}")
        setattr(record, key, value)

    if metadata_patch:
        metadata = parse_metadata(record.metadata_json)
        metadata.update(metadata_patch)
        record.metadata_json = dump_metadata(metadata)

    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def list_missing_derived(session: Session) -> list[MediaRecord]:
    """파생 에셋(히스토그램/플레이스홀더/해시) 중 하나라도 빠진 완료 레코드."""
    records = session.exec(
        select(MediaRecord).where(MediaRecord.image_url != "")
    ).all()
    missing = []
    for record in records:
        metadata = parse_metadata(record.metadata_json)
        if not all(metadata.get(key) for key in ("histogram", "thumbhash", "perceptualHash", "sha256")):
            missing.append(record)
    return missing
