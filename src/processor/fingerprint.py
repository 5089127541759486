import hashlib
from dataclasses import dataclass

import imagehash
from loguru import logger

from processor import operations

PERCEPTUAL_HASH_SIZE = 8


@dataclass(frozen=True)
class Fingerprints:
    content_hash: str
    perceptual_hash: str | None


def content_hash(data: bytes) -> str:
    """원본 바이트의 sha256. 같으면 완전히 같은 파일로 본다."""
    return hashlib.sha256(data).hexdigest()


def perceptual_hash(data: bytes, hash_size: int = PERCEPTUAL_HASH_SIZE) -> str | None:
    """8x8 그레이스케일 평균 해시 (16자리 hex). 어떤 실패든 None."""
    try:
        image = operations.decode(data)
        return str(imagehash.average_hash(image, hash_size=hash_size))
    except Exception as exc:
        logger.warning(f"Perceptual hash generation failed: {exc!r}")
        return None


def compute_fingerprints(data: bytes) -> Fingerprints:
    return Fingerprints(
        content_hash=content_hash(data),
        perceptual_hash=perceptual_hash(data),
    )


def hamming_distance(first: str | None, second: str | None) -> int | None:
    """두 perceptual hash의 해밍 거리. 비교할 수 없으면 None."""
    if not first or not second or len(first) != len(second):
        return None
    try:
        return int(imagehash.hex_to_hash(first) - imagehash.hex_to_hash(second))
    except ValueError:
        return None
