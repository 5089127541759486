"""
파생 에셋 생성에 공통으로 쓰는 순수 이미지 함수.
입력 이미지는 변경하지 않고 새 PIL.Image를 반환한다.
"""

import io

from PIL import Image, ImageOps


def decode(data: bytes) -> Image.Image:
    """바이트를 디코딩하고 EXIF 방향 정보를 적용한다."""
    image = Image.open(io.BytesIO(data))
    image.load()
    return ImageOps.exif_transpose(image)


def fit_within(image: Image.Image, max_width: int, max_height: int) -> Image.Image:
    """비율을 유지하며 박스 안에 맞춘다. 원본보다 크게 키우지 않는다."""
    result = image.copy()
    result.thumbnail((max_width, max_height), Image.LANCZOS)
    return result


def has_alpha(image: Image.Image) -> bool:
    if image.mode in ("RGBA", "LA", "PA", "La", "RGBa"):
        return True
    return image.mode == "P" and "transparency" in image.info


def to_rgb(image: Image.Image) -> Image.Image:
    if image.mode == "RGB":
        return image
    return image.convert("RGB")


def to_rgba(image: Image.Image) -> Image.Image:
    if image.mode == "RGBA":
        return image
    return image.convert("RGBA")


def encode(image: Image.Image, fmt: str, **params) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format=fmt, **params)
    return buf.getvalue()
