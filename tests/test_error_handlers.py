import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from docgate.shared.error_handlers import register_error_handlers
from docgate.shared.exceptions import (
    BadRequestError,
    ConversionFailedError,
    ImageConversionFailedError,
    InvalidArgumentError,
    ParseError,
    PayloadTooLargeError,
    TextExtractionFailedError,
    UnsupportedMediaTypeError,
    VLMError,
)


def build_client(exc: Exception) -> TestClient:
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/boom")
    async def boom():
        raise exc

    @app.get("/typed")
    async def typed(count: int):
        return {"count": count}

    return TestClient(app, raise_server_exceptions=False)


@pytest.mark.parametrize(
    "exc, status, code",
    [
        (BadRequestError("bad"), 400, "BAD_REQUEST"),
        (InvalidArgumentError("bad arg"), 400, "INVALID_ARGUMENT"),
        (PayloadTooLargeError(120.5, 100), 413, "PAYLOAD_TOO_LARGE"),
        (UnsupportedMediaTypeError("nope"), 415, "UNSUPPORTED_MEDIA_TYPE"),
        (ConversionFailedError("office died"), 422, "CONVERSION_FAILED"),
        (ImageConversionFailedError("pdftoppm died"), 422, "IMAGE_CONVERSION_FAILED"),
        (TextExtractionFailedError("no text"), 422, "TEXT_EXTRACTION_FAILED"),
        (ParseError("docling down"), 502, "PARSE_ERROR"),
        (VLMError("vlm down"), 502, "VLM_ERROR"),
    ],
)
def test_typed_errors_map_to_status_and_code(exc, status, code):
    response = build_client(exc).get("/boom")

    assert response.status_code == status
    assert response.json() == {"error": code, "message": exc.message}


def test_unexpected_errors_do_not_leak_details():
    response = build_client(RuntimeError("secret stack detail")).get("/boom")

    assert response.status_code == 500
    assert response.json() == {"error": "INTERNAL_ERROR", "message": "An unexpected error occurred"}
    assert "secret" not in response.text


def test_request_validation_is_a_bad_request():
    response = build_client(RuntimeError()).get("/typed?count=many")

    assert response.status_code == 400
    assert response.json()["error"] == "BAD_REQUEST"
    assert "count" in response.json()["message"]


def test_payload_too_large_message():
    exc = PayloadTooLargeError(120.5, 100)

    assert exc.message == "File size 120.5MB exceeds maximum allowed size of 100MB"
    assert exc.details == {"size_mb": 120.5, "max_size_mb": 100}
