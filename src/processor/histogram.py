"""정규화된 RGB + 휘도 히스토그램.

작업량을 제한하려고 256x256 박스 안으로 줄인 뒤 모든 픽셀을 센다.
각 채널은 256칸이고 합이 1이 되도록 픽셀 수로 나눈다.
"""

from loguru import logger
from PIL import Image

from processor import operations

HISTOGRAM_MAX_SIZE = 256
CHANNELS = ("red", "green", "blue", "luminance")


def luminance(r: int, g: int, b: int) -> int:
    """ITU-R BT.601 가중치. 반올림은 0.5에서 올림."""
    value = int(0.299 * r + 0.587 * g + 0.114 * b + 0.5)
    return min(255, max(0, value))


def histogram_from_image(image: Image.Image) -> dict[str, list[float]] | None:
    image = operations.to_rgb(image)
    pixel_count = image.width * image.height
    if pixel_count == 0:
        return None

    # RGB 모드의 histogram()은 R/G/B 256칸씩 이어 붙인 768칸
    rgb = image.histogram()
    counts = {
        "red": rgb[0:256],
        "green": rgb[256:512],
        "blue": rgb[512:768],
        "luminance": [0] * 256,
    }

    lum = counts["luminance"]
    raw = image.tobytes()
    for r, g, b in zip(raw[0::3], raw[1::3], raw[2::3]):
        lum[luminance(r, g, b)] += 1

    return {
        name: [count / pixel_count for count in values]
        for name, values in counts.items()
    }


def compute_histogram(
    data: bytes, max_size: int = HISTOGRAM_MAX_SIZE
) -> dict[str, list[float]] | None:
    """히스토그램은 best-effort. 어떤 실패든 예외 대신 None."""
    try:
        image = operations.fit_within(operations.decode(data), max_size, max_size)
        return histogram_from_image(image)
    except Exception as exc:
        logger.warning(f"Histogram generation failed: {exc!r}")
        return None
