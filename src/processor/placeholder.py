"""ThumbHash 저해상도 플레이스홀더.

100x100 이하로 줄인 RGBA 이미지를 thumbhash로 20~30바이트 해시로 만든다.
디코딩하면 흐릿한 미리보기와 대략적인 종횡비를 얻는다.
레이아웃 슬롯을 원본 로딩 전에 칠하는 용도.
"""

import base64
import io
from dataclasses import dataclass

from loguru import logger
from PIL import Image
from thumbhash.decode import thumbhash_to_rgba
from thumbhash.encode import rgba_to_thumbhash

from processor import operations

PLACEHOLDER_MAX_SIZE = 100
HEADER_BYTES = 5


@dataclass(frozen=True)
class PlaceholderPreview:
    width: int
    height: int
    rgba: bytes

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def average_color(self) -> tuple[float, float, float, float]:
        """채널별 평균 (0~1)."""
        pixels = self.width * self.height
        return tuple(sum(self.rgba[channel::4]) / pixels / 255 for channel in range(4))

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), self.rgba)

    def to_data_url(self) -> str:
        buf = io.BytesIO()
        self.to_image().save(buf, format="PNG")
        return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def encode_placeholder(data: bytes, max_size: int = PLACEHOLDER_MAX_SIZE) -> str | None:
    """이미지 바이트 → base64 ThumbHash. 실패 시 None."""
    try:
        image = operations.fit_within(operations.decode(data), max_size, max_size)
        image = operations.to_rgba(image)
        hash_bytes = bytes(rgba_to_thumbhash(image.width, image.height, image.tobytes()))
    except Exception as exc:
        logger.warning(f"Placeholder generation failed: {exc!r}")
        return None
    return base64.b64encode(hash_bytes).decode("ascii")


def decode_placeholder(encoded: str | None) -> PlaceholderPreview | None:
    """base64 ThumbHash → 미리보기. 손상/잘린 입력은 예외 없이 None."""
    if not encoded:
        return None
    try:
        hash_bytes = base64.b64decode(encoded, validate=True)
        if len(hash_bytes) < HEADER_BYTES:
            raise ValueError("placeholder is shorter than its header")
        width, height, rgba = thumbhash_to_rgba(hash_bytes)
        rgba = bytes(rgba)
        if width <= 0 or height <= 0 or len(rgba) != width * height * 4:
            raise ValueError(f"unexpected preview size {width}x{height}")
    except Exception as exc:
        logger.debug(f"Ignoring unreadable placeholder: {exc!r}")
        return None
    return PlaceholderPreview(width=width, height=height, rgba=rgba)
