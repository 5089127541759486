"""
파생 에셋 백필 스크립트.

히스토그램 / 플레이스홀더 / 해시가 빠진 레코드의 원본을 다시 내려받아
채워 넣는다. 썸네일 URL은 건드리지 않는다.

사용법:
    cd src && uv run python -m scripts.backfill_derived
    cd src && uv run python -m scripts.backfill_derived --dry-run
"""

import argparse

import httpx
from loguru import logger
from sqlmodel import Session

from core.config import settings
from model.database import create_db_and_tables, engine
from processor.fingerprint import compute_fingerprints
from processor.histogram import compute_histogram
from processor.placeholder import encode_placeholder
from service import media_store
from service.classifier import ImageTooLarge, fetch_image_bytes
from utility.logger import setup_logger
from utility.timer import timer


def backfill_record(session: Session, record, data: bytes, dry_run: bool = False) -> dict:
    """이미 있는 값은 유지하고 빠진 값만 계산해 patch로 돌려준다."""
    metadata = media_store.parse_metadata(record.metadata_json)
    patch = {}

    if not metadata.get("sha256") or not metadata.get("perceptualHash"):
        fingerprints = compute_fingerprints(data)
        patch["sha256"] = fingerprints.content_hash
        patch["perceptualHash"] = fingerprints.perceptual_hash
    if not metadata.get("histogram"):
        patch["histogram"] = compute_histogram(data)
    if not metadata.get("thumbhash"):
        patch["thumbhash"] = encode_placeholder(data)

    patch = {key: value for key, value in patch.items() if value is not None}
    if patch and not dry_run:
        media_store.update(session, record.id, {}, patch)
    return patch


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Backfill derived assets")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    setup_logger(settings.LOG_LEVEL)
    create_db_and_tables()

    updated = 0
    with Session(engine) as session, httpx.Client(timeout=30.0) as client:
        records = media_store.list_missing_derived(session)
        logger.info(f"{len(records)} records need backfill")

        for record in records:
            try:
                data = fetch_image_bytes(client, record.image_url, settings.MAX_UPLOAD_BYTES)
            except (httpx.HTTPError, ImageTooLarge) as exc:
                logger.warning(f"Skip #{record.id} {record.image_url}: {exc}")
                continue

            with timer(f"backfill #{record.id}"):
                patch = backfill_record(session, record, data, dry_run=args.dry_run)
            if patch:
                updated += 1
                logger.info(f"#{record.id}: {', '.join(sorted(patch))}")

    logger.info(f"Done. {updated} records {'would be ' if args.dry_run else ''}updated")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
