import io
import os
import stat
import zipfile
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from docgate.core.backend_manager import BackendManager, get_backend_manager
from docgate.core.config import Settings
from docgate.features.convert.domain.entities import PageImage
from docgate.features.convert.domain.service_interface import OfficeConverter, PdfRasterizer
from docgate.features.parse.domain.entities import ImageExportMode, ParserProfile, ParseResult
from docgate.features.parse.domain.service_interface import StructuredParser, TextExtractor, VisionOCR
from docgate.shared.exceptions import ImageConversionFailedError
from docgate.main import create_app


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
PNG_BYTES = PNG_SIGNATURE + b"\x00\x00\x00\rIHDR" + b"\x00" * 32
PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


def make_docx() -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(
            "[Content_Types].xml",
            '<?xml version="1.0"?><Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
            '<Override PartName="/word/document.xml" '
            'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/></Types>',
        )
        archive.writestr("_rels/.rels", '<?xml version="1.0"?><Relationships/>')
        archive.writestr("word/document.xml", '<?xml version="1.0"?><w:document/>')
    return buffer.getvalue()


def make_odt() -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(zipfile.ZipInfo("mimetype"), "application/vnd.oasis.opendocument.text")
        archive.writestr("content.xml", '<?xml version="1.0"?><office:document-content/>')
        archive.writestr("META-INF/manifest.xml", '<?xml version="1.0"?><manifest:manifest/>')
    return buffer.getvalue()


class FakeOfficeConverter(OfficeConverter):
    def __init__(self):
        self.calls: List[tuple] = []

    async def convert_to_odt(self, content: bytes, input_filter: Optional[str] = None) -> bytes:
        self.calls.append(("odt", content, input_filter))
        return b"PK\x03\x04fake-odt"

    async def convert_to_pdf(self, content: bytes, input_filter: Optional[str] = None) -> bytes:
        self.calls.append(("pdf", content, input_filter))
        return PDF_BYTES


class FakeRasterizer(PdfRasterizer):
    def __init__(self, pages: int = 3, fail_on_page: Optional[int] = None):
        self.pages = pages
        self.fail_on_page = fail_on_page
        self.calls: List[tuple] = []
        self.closed = False

    async def rasterize(self, pdf_bytes: bytes, image_format: str = "png", dpi: int = 150):
        self.calls.append((pdf_bytes, image_format, dpi))
        try:
            for page in range(1, self.pages + 1):
                if page == self.fail_on_page:
                    raise ImageConversionFailedError(f"pdftoppm failed for page {page}")
                yield PageImage(page=page, format="png", content=PNG_BYTES + bytes([page]), total_pages=self.pages)
        finally:
            self.closed = True


class FakeVLM(VisionOCR):
    def __init__(self, text: str = "OCR TEXT", fail: bool = False):
        self.text = text
        self.fail = fail
        self.calls: List[tuple] = []

    async def ocr(self, data_uri: str, prompt: Optional[str] = None) -> str:
        self.calls.append((data_uri, prompt))
        if self.fail:
            raise RuntimeError("vlm down")
        return self.text

    def describe(self):
        return [{"base_url": "http://vlm:8000", "status": "configured (model: fake)"}]


class FakeStructuredParser(StructuredParser):
    def __init__(self, markdown: str = "# Parsed"):
        self.markdown = markdown
        self.calls: List[tuple] = []

    async def parse(self, content: bytes, filename: str, image_mode: ImageExportMode = ImageExportMode.PLACEHOLDER) -> ParseResult:
        self.calls.append((content, filename, image_mode))
        return ParseResult(filename=filename, markdown=self.markdown)

    async def health_check(self):
        return [{"base_url": "http://docling:5001", "status": "ok"}]


class FakeTextExtractor(TextExtractor):
    def __init__(self, text: str = "extracted text"):
        self.text = text
        self.calls: List[tuple] = []

    async def extract_text(self, content: bytes, filename: str) -> str:
        self.calls.append((content, filename))
        return self.text


def make_backends(
    profile: ParserProfile = ParserProfile.HYBRID,
    pages: int = 3,
    docling: Optional[FakeStructuredParser] = None,
    vlm: Optional[FakeVLM] = None,
    text_extractor: Optional[FakeTextExtractor] = None,
) -> BackendManager:
    backends = BackendManager()
    backends.profile = profile
    backends.office_converter = FakeOfficeConverter()
    backends.rasterizer = FakeRasterizer(pages=pages)
    if profile in (ParserProfile.HYBRID, ParserProfile.STRUCTURED_ONLY):
        backends.docling = docling or FakeStructuredParser()
    if profile in (ParserProfile.HYBRID, ParserProfile.VLM_ONLY):
        backends.vlm = vlm or FakeVLM()
    if profile is ParserProfile.FALLBACK_TEXT:
        backends.text_extractor = text_extractor or FakeTextExtractor()
    return backends


def make_client(backends: BackendManager, settings: Optional[Settings] = None) -> TestClient:
    app = create_app(settings or Settings())
    app.dependency_overrides[get_backend_manager] = lambda: backends
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def backends():
    return make_backends()


@pytest.fixture
def client(backends):
    return make_client(backends)


def write_script(path, body: str) -> str:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def poppler_stubs(tmp_path):
    """Fake pdfinfo/pdftoppm that report PAGES pages and write '<prefix>.png' with a PNG header.

    With ``sleep`` set, pdftoppm records its PID in ``tmp_path/pdftoppm.pid`` and hangs,
    on every page or only on ``sleep_page``.
    """

    def build(
        pages: int = 3,
        pdfinfo_exit: int = 0,
        fail_page: Optional[int] = None,
        sleep: float = 0,
        sleep_page: Optional[int] = None,
    ):
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        pdfinfo = write_script(
            bin_dir / "pdfinfo",
            f'echo "Producer: stub"\necho "Pages:          {pages}"\n'
            + (f'echo "broken pdf" >&2\nexit {pdfinfo_exit}\n' if pdfinfo_exit else "exit 0\n"),
        )
        hang = f'echo $$ > "{tmp_path / "pdftoppm.pid"}"\nexec sleep {sleep}\n' if sleep else ""
        if hang and sleep_page:
            hang = f'if [ "$page" = "{sleep_page}" ]; then\n{hang}fi\n'
        # Args: -<fmt> -r <dpi> -f <p> -l <p> -singlefile <input> <prefix>
        pdftoppm = write_script(
            bin_dir / "pdftoppm",
            f'fmt="${{1#-}}"\npage="$5"\nprefix="${{10}}"\n'
            + hang
            + (f'if [ "$page" = "{fail_page}" ]; then echo "render failed" >&2; exit 1; fi\n' if fail_page else "")
            + 'ext="$fmt"\nif [ "$fmt" = "jpeg" ]; then ext="jpg"; fi\n'
            + 'printf "\\211PNG\\r\\n\\032\\npage-%s" "$page" > "$prefix.$ext"\n'
            + 'echo "$@" >> "' + str(tmp_path / "pdftoppm.log") + '"\n',
        )
        work = tmp_path / "work"
        work.mkdir(exist_ok=True)
        return pdfinfo, pdftoppm, str(work)

    return build


def read_stub_pid(tmp_path) -> int:
    return int((tmp_path / "pdftoppm.pid").read_text().strip())


def process_is_gone(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    return False


def list_temp_entries(path: str) -> List[str]:
    return sorted(os.listdir(path))
