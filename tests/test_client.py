import json

import httpx
import pytest

from conftest import PDF_BYTES, PNG_BYTES
from docgate.client import GatewayClient, GatewayClientError
from docgate.shared.file_types import to_data_uri


def build_client(handler) -> GatewayClient:
    return GatewayClient(base_url="http://gateway:8000", transport=httpx.MockTransport(handler))


def test_convert_to_pdf_posts_the_file(tmp_path):
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["body"] = request.read()
        return httpx.Response(200, content=PDF_BYTES, headers={"content-type": "application/pdf"})

    source = tmp_path / "report.docx"
    source.write_bytes(b"docx-bytes")

    with build_client(handler) as client:
        result = client.convert_to_pdf(source)

    assert result == PDF_BYTES
    assert seen["url"] == "http://gateway:8000/api/convert/pdf"
    assert b'filename="report.docx"' in seen["body"]
    assert b"docx-bytes" in seen["body"]


def test_convert_to_images_parses_ndjson_lines():
    lines = [
        json.dumps({"page": n, "encoded_uri": to_data_uri("image/png", PNG_BYTES), "size": len(PNG_BYTES), "total_pages": 2})
        for n in (1, 2)
    ]
    seen = {}

    def handler(request: httpx.Request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, content=("\n".join(lines) + "\n").encode(), headers={"content-type": "application/x-ndjson"})

    with build_client(handler) as client:
        pages = list(client.convert_to_images(PDF_BYTES, filename="doc.pdf", image_format="jpg", dpi=72))

    assert seen["params"] == {"format": "jpg", "dpi": "72"}
    assert [page.page for page in pages] == [1, 2]
    assert all(page.total_pages == 2 for page in pages)
    assert pages[0].content == PNG_BYTES


def test_parse_returns_result():
    def handler(request: httpx.Request):
        assert request.url.path == "/api/parse/parse"
        assert request.url.params["dpi"] == "150"
        return httpx.Response(200, json={"filename": "a.pdf", "markdown": "# A"})

    with build_client(handler) as client:
        result = client.parse(PDF_BYTES, filename="a.pdf")

    assert result.filename == "a.pdf"
    assert result.markdown == "# A"


def test_error_body_is_raised():
    def handler(request: httpx.Request):
        return httpx.Response(415, json={"error": "UNSUPPORTED_MEDIA_TYPE", "message": "Plain text files not supported: a.txt"})

    with build_client(handler) as client:
        with pytest.raises(GatewayClientError) as excinfo:
            client.parse(b"hello", filename="a.txt")

    assert excinfo.value.status_code == 415
    assert excinfo.value.error_code == "UNSUPPORTED_MEDIA_TYPE"
    assert "Plain text" in excinfo.value.message


def test_streaming_error_is_raised_before_any_page():
    def handler(request: httpx.Request):
        return httpx.Response(400, json={"error": "BAD_REQUEST", "message": "File is empty"})

    with build_client(handler) as client:
        with pytest.raises(GatewayClientError, match="BAD_REQUEST"):
            list(client.convert_to_images(b"x", filename="a.pdf"))


def test_raw_bytes_need_a_filename():
    with build_client(lambda request: httpx.Response(200)) as client:
        with pytest.raises(ValueError):
            client.convert_to_odt(b"bytes")


def test_health():
    with build_client(lambda request: httpx.Response(200, text="OK")) as client:
        assert client.health() == "OK"
