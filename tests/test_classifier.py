"""장르 분류 협력 서비스 테스트."""

import base64
import json

import httpx
import pytest

from conftest import make_gradient_bytes
from core.config import Settings
from service.classifier import (
    HttpGenreClassifier,
    ImageTooLarge,
    fetch_image_bytes,
    parse_classification,
)

IMAGE_URL = "https://cdn.test/gallery/a.png"
CLASSIFY_URL = "https://classifier.test/classify"


class TestParseClassification:
    def test_full_payload(self):
        result = parse_classification(
            {
                "primary_category": " Portrait ",
                "secondary_categories": ["Street", "", 3, " Night "],
                "confidence": 0.8,
                "reason": " 인물 중심 ",
            }
        )
        assert result.primary == "Portrait"
        assert result.secondary == ["Street", "Night"]
        assert result.confidence == 0.8
        assert result.reason == "인물 중심"
        assert result.label == "Portrait"

    def test_json_string_and_clamped_confidence(self):
        result = parse_classification(json.dumps({"primary_category": "Macro", "confidence": 7}))
        assert result.confidence == 1.0

    def test_label_falls_back_to_secondary(self):
        result = parse_classification({"secondary_categories": ["Wildlife"]})
        assert result.label == "Wildlife"

    @pytest.mark.parametrize(
        "raw",
        ["not json", [], {}, {"confidence": True}, {"confidence": float("nan")}],
    )
    def test_unusable_payload_is_none(self, raw):
        assert parse_classification(raw) is None


class TestFetchImageBytes:
    def test_returns_body_under_limit(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"x" * 10))
        with httpx.Client(transport=transport) as client:
            assert fetch_image_bytes(client, IMAGE_URL, 10) == b"x" * 10

    def test_rejects_declared_length(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                200, content=b"x" * 20, headers={"content-length": "20"}
            )
        )
        with httpx.Client(transport=transport) as client:
            with pytest.raises(ImageTooLarge):
                fetch_image_bytes(client, IMAGE_URL, 10)

    def test_rejects_streamed_overflow(self):
        def chunks():
            yield b"x" * 8
            yield b"x" * 8

        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=chunks()))
        with httpx.Client(transport=transport) as client:
            with pytest.raises(ImageTooLarge):
                fetch_image_bytes(client, IMAGE_URL, 10)

    def test_http_error_propagates(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        with httpx.Client(transport=transport) as client:
            with pytest.raises(httpx.HTTPStatusError):
                fetch_image_bytes(client, IMAGE_URL, 10)


class TestHttpGenreClassifier:
    def test_downscales_and_posts_webp(self):
        sent = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, content=make_gradient_bytes(1200, 400))
            sent.update(json.loads(request.content))
            return httpx.Response(200, json={"primary_category": "Landscape", "confidence": 0.7})

        classifier = HttpGenreClassifier(CLASSIFY_URL, transport=httpx.MockTransport(handler))
        try:
            result = classifier.classify(IMAGE_URL)
        finally:
            classifier.close()

        assert result.label == "Landscape"
        assert sent["mime_type"] == "image/webp"
        assert base64.b64decode(sent["image"])[8:12] == b"WEBP"

    def test_blank_url_skips_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        classifier = HttpGenreClassifier(CLASSIFY_URL, transport=httpx.MockTransport(handler))
        assert classifier.classify("  ") is None
        classifier.close()

    def test_disabled_without_url(self):
        assert HttpGenreClassifier.from_settings(Settings(CLASSIFIER_URL="")) is None

    def test_enabled_with_url(self):
        classifier = HttpGenreClassifier.from_settings(Settings(CLASSIFIER_URL=CLASSIFY_URL))
        assert classifier.endpoint == CLASSIFY_URL
        classifier.close()
