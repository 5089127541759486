"""업로드 요청(multipart) 구조 파싱.

여기서는 구조만 검사한다. 필드 값은 문자열 그대로 두고, 숫자 변환/공백 제거는
ingest_service에서 한다.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from fastapi import Request
from loguru import logger
from starlette.datastructures import UploadFile
from starlette.formparsers import MultiPartException

from core.exceptions import UploadTooLarge, UploadValidationError

REQUIRED_NUMERIC_FIELDS = ("width", "height")


@dataclass
class ParsedUpload:
    data: bytes
    filename: str
    content_type: str
    fields: dict[str, str] = field(default_factory=dict)


def is_positive_number(raw: str | None) -> bool:
    if raw is None:
        return False
    try:
        value = float(raw)
    except ValueError:
        return False
    return math.isfinite(value) and value > 0


def split_form(items: Iterable[tuple[str, UploadFile | str]], max_bytes: int) -> ParsedUpload:
    """폼 항목을 파일 하나와 문자열 필드들로 나눈다.

    파일 파트가 여러 개면 첫 번째만 쓰고 나머지는 무시한다.
    """
    upload: UploadFile | None = None
    fields: dict[str, str] = {}

    for name, value in items:
        if isinstance(value, UploadFile):
            if upload is None:
                upload = value
            else:
                logger.debug(f"Ignoring extra file part '{name}'")
            continue
        fields[name] = value

    if upload is None:
        raise UploadValidationError("이미지 파일이 필요합니다")

    if upload.size is not None and upload.size > max_bytes:
        raise UploadTooLarge
    upload.file.seek(0)
    data = upload.file.read(max_bytes + 1)
    if not data:
        raise UploadValidationError("빈 파일은 업로드할 수 없습니다")
    if len(data) > max_bytes:
        raise UploadTooLarge

    for name in REQUIRED_NUMERIC_FIELDS:
        if not is_positive_number(fields.get(name)):
            raise UploadValidationError(f"{name} 값은 0보다 큰 숫자여야 합니다")

    return ParsedUpload(
        data=data,
        filename=upload.filename or "",
        content_type=upload.content_type or "application/octet-stream",
        fields=fields,
    )


async def parse_upload(request: Request, max_bytes: int) -> ParsedUpload:
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        raise UploadValidationError("multipart/form-data 요청이 필요합니다")

    try:
        form = await request.form()
    except MultiPartException as exc:
        raise UploadValidationError(f"multipart 본문을 해석할 수 없습니다: {exc.message}") from exc

    try:
        return split_form(form.multi_items(), max_bytes)
    finally:
        await form.close()
