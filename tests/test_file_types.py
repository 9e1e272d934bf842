import pytest

from conftest import PDF_BYTES, PNG_BYTES, make_docx
from docgate.shared.exceptions import InvalidArgumentError, UnsupportedMediaTypeError
from docgate.shared.file_types import (
    FileCategory,
    decode_base64,
    decode_data_uri,
    detect_file_type,
    sniff_mime_type,
    to_data_uri,
    validate_data_uri,
)


@pytest.mark.parametrize(
    "content, filename, mime_type, category, extension",
    [
        (PDF_BYTES, "paper.pdf", "application/pdf", FileCategory.PDF, ".pdf"),
        (PNG_BYTES, "scan.png", "image/png", FileCategory.IMAGE, ".png"),
        (b"hello world", "note.txt", "text/plain", FileCategory.PLAIN_TEXT, ".txt"),
        (b"# Heading\n\ntext\n", "readme.md", "text/markdown", FileCategory.MARKDOWN, ".md"),
        (b"a,b\n1,2\n", "table.csv", "text/csv", FileCategory.SPREADSHEET, ".csv"),
        (b"<!DOCTYPE html><html><body>x</body></html>", "page.txt", "text/html", FileCategory.DOCUMENT, ".html"),
    ],
)
def test_detect_file_type(content, filename, mime_type, category, extension):
    info = detect_file_type(content, filename)

    assert info.mime_type == mime_type
    assert info.category is category
    assert info.extension == extension
    assert info.original_filename == filename


def test_docx_is_a_document():
    info = detect_file_type(make_docx(), "Quarterly Report.docx")

    assert info.category is FileCategory.DOCUMENT
    assert info.mime_type == "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    assert info.base_filename == "Quarterly Report"


def test_content_wins_over_a_misleading_extension():
    info = detect_file_type(PDF_BYTES, "actually-a-pdf.docx")

    assert info.category is FileCategory.PDF


@pytest.mark.parametrize(
    "filename, base",
    [("report.final.pdf", "report.final"), ("README", "README"), (".bashrc", ".bashrc")],
)
def test_base_filename_drops_only_the_final_extension(filename, base):
    assert detect_file_type(b"plain words", filename).base_filename == base


def test_binary_without_known_signature_is_unsupported():
    with pytest.raises(UnsupportedMediaTypeError):
        detect_file_type(b"\x00\x01\x02\x03\xff\xfe" * 10, "blob.bin")


def test_blank_filename_is_rejected():
    with pytest.raises(InvalidArgumentError):
        detect_file_type(b"hello", "  ")


def test_classification_is_stable_across_calls():
    first = detect_file_type(b"# T\n", "a.md")
    second = detect_file_type(b"# T\n", "a.md")

    assert first == second


def test_sniffing_without_filename_reports_plain_text():
    assert sniff_mime_type(b"just text") == "text/plain"


def test_data_uri_round_trip():
    uri = to_data_uri("image/png", PNG_BYTES)

    assert uri.startswith("data:image/png;base64,")
    assert validate_data_uri(uri)
    assert decode_data_uri(uri) == PNG_BYTES


@pytest.mark.parametrize(
    "uri",
    [
        "",
        "image/png;base64,AAAA",
        "data:image/png,AAAA",
        "data:image/png;base64,not base64!",
        "data:image/png;base64,AA;base64,AA",
    ],
)
def test_malformed_data_uris(uri):
    assert not validate_data_uri(uri)
    with pytest.raises(InvalidArgumentError):
        decode_data_uri(uri)


def test_decode_base64_rejects_garbage():
    assert decode_base64("aGVsbG8=") == b"hello"
    with pytest.raises(InvalidArgumentError):
        decode_base64("@@@")
    with pytest.raises(InvalidArgumentError):
        decode_base64("")


FLAT_ODT = (
    b'<?xml version="1.0" encoding="UTF-8"?>\n'
    b'<office:document xmlns:office="urn:oasis:names:tc:opendocument:xmlns:office:1.0" '
    b'office:version="1.3" office:mimetype="application/vnd.oasis.opendocument.text">'
    b"<office:body><office:text><text:p>Hello</text:p></office:text></office:body></office:document>"
)
ABIWORD = b'<?xml version="1.0" encoding="UTF-8"?>\n<abiword template="false" version="3.0"><section><p>Hi</p></section></abiword>'


@pytest.mark.parametrize(
    "content, filename, mime_type, category",
    [
        (FLAT_ODT, "report.fodt", "application/vnd.oasis.opendocument.text-flat-xml", FileCategory.DOCUMENT),
        (FLAT_ODT, "report.xml", "application/vnd.oasis.opendocument.text-flat-xml", FileCategory.DOCUMENT),
        (
            FLAT_ODT.replace(b"opendocument.text", b"opendocument.spreadsheet"),
            "budget.fods",
            "application/vnd.oasis.opendocument.spreadsheet-flat-xml",
            FileCategory.SPREADSHEET,
        ),
        (ABIWORD, "letter.abw", "application/x-abiword", FileCategory.DOCUMENT),
        (ABIWORD, "letter.txt", "application/x-abiword", FileCategory.DOCUMENT),
        (b"<presentation/>", "slides.fodp", "application/vnd.oasis.opendocument.presentation-flat-xml", FileCategory.PRESENTATION),
    ],
)
def test_text_based_office_formats_are_not_plain_text(content, filename, mime_type, category):
    info = detect_file_type(content, filename)

    assert info.mime_type == mime_type
    assert info.category is category


@pytest.mark.parametrize("filename", ["data.json", "config.yaml", "feed.xml"])
def test_structured_data_text_is_unsupported(filename):
    with pytest.raises(UnsupportedMediaTypeError, match="Unsupported MIME type"):
        detect_file_type(b'{"key": "value"}', filename)


def test_text_with_an_unknown_extension_stays_plain_text():
    assert detect_file_type(b"2024-01-01 started\n", "server.log").category is FileCategory.PLAIN_TEXT
