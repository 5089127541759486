from dataclasses import dataclass

from core.exceptions import DerivedAssetError
from processor import operations

THUMBNAIL_MAX_SIZE = 960
THUMBNAIL_QUALITY = 82


@dataclass(frozen=True)
class Thumbnail:
    data: bytes
    width: int
    height: int
    content_type: str = "image/webp"


def create_thumbnail(
    data: bytes,
    max_size: int = THUMBNAIL_MAX_SIZE,
    quality: int = THUMBNAIL_QUALITY,
) -> Thumbnail:
    """원본을 max_size 박스 안으로 줄여 WEBP로 다시 인코딩한다.

    확대는 하지 않는다. 디코딩/인코딩 중 어떤 실패든 DerivedAssetError로
    올려서 호출 측이 원본 URL 폴백을 적용할 수 있게 한다.
    """
    try:
        image = operations.fit_within(operations.decode(data), max_size, max_size)
        if operations.has_alpha(image):
            image = operations.to_rgba(image)
        else:
            image = operations.to_rgb(image)
        encoded = operations.encode(image, "WEBP", quality=quality)
    except Exception as exc:
        raise DerivedAssetError(f"Thumbnail generation failed: {exc}") from exc

    return Thumbnail(data=encoded, width=image.width, height=image.height)
