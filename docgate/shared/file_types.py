"""File type detection, classification and data URI helpers."""

import base64
import binascii
import codecs
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

import filetype

from docgate.shared.exceptions import InvalidArgumentError, UnsupportedMediaTypeError
from docgate.shared.helpers import get_file_extension, strip_extension
from docgate.core.logger import get_logger

logger = get_logger(__name__)


class FileCategory(str, Enum):
    DOCUMENT = "DOCUMENT"
    SPREADSHEET = "SPREADSHEET"
    PRESENTATION = "PRESENTATION"
    PDF = "PDF"
    IMAGE = "IMAGE"
    PLAIN_TEXT = "PLAIN_TEXT"
    MARKDOWN = "MARKDOWN"


# Word processing documents (plain text and markdown excluded)
DOCUMENT_TYPES: FrozenSet[str] = frozenset({
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-word.template.macroEnabled.12",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.template",
    "application/vnd.oasis.opendocument.text",
    "application/vnd.oasis.opendocument.text-template",
    "application/vnd.oasis.opendocument.text-flat-xml",
    "application/x-hwp",
    "application/hwp",
    "application/vnd.hancom.hwp",
    "application/vnd.hancom.hwpx",
    "application/hwp+zip",
    "text/rtf",
    "application/rtf",
    "text/html",
    "application/xhtml+xml",
    "application/vnd.wordperfect",
    "application/x-abiword",
})

SPREADSHEET_TYPES: FrozenSet[str] = frozenset({
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.template.macroEnabled.12",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.template",
    "application/vnd.oasis.opendocument.spreadsheet",
    "application/vnd.oasis.opendocument.spreadsheet-template",
    "application/vnd.oasis.opendocument.spreadsheet-flat-xml",
    "text/csv",
})

PRESENTATION_TYPES: FrozenSet[str] = frozenset({
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.ms-powerpoint.template.macroEnabled.12",
    "application/vnd.openxmlformats-officedocument.presentationml.template",
    "application/vnd.oasis.opendocument.presentation",
    "application/vnd.oasis.opendocument.presentation-template",
    "application/vnd.oasis.opendocument.presentation-flat-xml",
})

PDF_TYPES: FrozenSet[str] = frozenset({"application/pdf"})

IMAGE_TYPES: FrozenSet[str] = frozenset({
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/tiff",
})

PLAIN_TEXT_TYPES: FrozenSet[str] = frozenset({"text/plain"})

MARKDOWN_TYPES: FrozenSet[str] = frozenset({"text/markdown", "text/x-markdown"})

# First hit wins
_CATEGORY_PRIORITY = (
    (PLAIN_TEXT_TYPES, FileCategory.PLAIN_TEXT),
    (MARKDOWN_TYPES, FileCategory.MARKDOWN),
    (DOCUMENT_TYPES, FileCategory.DOCUMENT),
    (SPREADSHEET_TYPES, FileCategory.SPREADSHEET),
    (PRESENTATION_TYPES, FileCategory.PRESENTATION),
    (PDF_TYPES, FileCategory.PDF),
    (IMAGE_TYPES, FileCategory.IMAGE),
)

# Used when content sniffing yields a type outside the category tables
EXTENSION_MIME_MAP: Dict[str, str] = {
    # Documents
    ".hwp": "application/x-hwp",
    ".hwpx": "application/vnd.hancom.hwpx",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".dotx": "application/vnd.openxmlformats-officedocument.wordprocessingml.template",
    ".dotm": "application/vnd.ms-word.template.macroEnabled.12",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".ott": "application/vnd.oasis.opendocument.text-template",
    ".fodt": "application/vnd.oasis.opendocument.text-flat-xml",
    ".rtf": "text/rtf",
    ".html": "text/html",
    ".htm": "text/html",
    ".xhtml": "application/xhtml+xml",
    ".wpd": "application/vnd.wordperfect",
    ".abw": "application/x-abiword",
    # Spreadsheets
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xltx": "application/vnd.openxmlformats-officedocument.spreadsheetml.template",
    ".xltm": "application/vnd.ms-excel.template.macroEnabled.12",
    ".ods": "application/vnd.oasis.opendocument.spreadsheet",
    ".ots": "application/vnd.oasis.opendocument.spreadsheet-template",
    ".fods": "application/vnd.oasis.opendocument.spreadsheet-flat-xml",
    ".csv": "text/csv",
    # Presentations
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".potx": "application/vnd.openxmlformats-officedocument.presentationml.template",
    ".potm": "application/vnd.ms-powerpoint.template.macroEnabled.12",
    ".odp": "application/vnd.oasis.opendocument.presentation",
    ".otp": "application/vnd.oasis.opendocument.presentation-template",
    ".fodp": "application/vnd.oasis.opendocument.presentation-flat-xml",
    # PDF
    ".pdf": "application/pdf",
    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    # Plain text
    ".txt": "text/plain",
    # Markdown
    ".md": "text/markdown",
    ".markdown": "text/markdown",
}

# Canonical extension per MIME type
MIME_EXTENSION_MAP: Dict[str, str] = {
    "text/plain": ".txt",
    "text/markdown": ".md",
    "text/x-markdown": ".md",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.ms-word.template.macroEnabled.12": ".dotm",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.template": ".dotx",
    "application/vnd.oasis.opendocument.text": ".odt",
    "application/vnd.oasis.opendocument.text-template": ".ott",
    "application/vnd.oasis.opendocument.text-flat-xml": ".fodt",
    "application/x-hwp": ".hwp",
    "application/hwp": ".hwp",
    "application/vnd.hancom.hwp": ".hwp",
    "application/vnd.hancom.hwpx": ".hwpx",
    "application/hwp+zip": ".hwpx",
    "text/rtf": ".rtf",
    "application/rtf": ".rtf",
    "text/html": ".html",
    "application/xhtml+xml": ".xhtml",
    "application/vnd.wordperfect": ".wpd",
    "application/x-abiword": ".abw",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/vnd.ms-excel.template.macroEnabled.12": ".xltm",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.template": ".xltx",
    "application/vnd.oasis.opendocument.spreadsheet": ".ods",
    "application/vnd.oasis.opendocument.spreadsheet-template": ".ots",
    "application/vnd.oasis.opendocument.spreadsheet-flat-xml": ".fods",
    "text/csv": ".csv",
    "application/vnd.ms-powerpoint": ".ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    "application/vnd.ms-powerpoint.template.macroEnabled.12": ".potm",
    "application/vnd.openxmlformats-officedocument.presentationml.template": ".potx",
    "application/vnd.oasis.opendocument.presentation": ".odp",
    "application/vnd.oasis.opendocument.presentation-template": ".otp",
    "application/vnd.oasis.opendocument.presentation-flat-xml": ".fodp",
    "application/pdf": ".pdf",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
}

# Text formats that content sniffing alone reports as text/plain, keyed by extension.
# Structured data formats map to types outside the category tables and stay unsupported.
TEXT_EXTENSION_MIME_MAP: Dict[str, str] = {
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".csv": "text/csv",
    ".html": "text/html",
    ".htm": "text/html",
    ".xhtml": "application/xhtml+xml",
    ".rtf": "text/rtf",
    ".fodt": "application/vnd.oasis.opendocument.text-flat-xml",
    ".fods": "application/vnd.oasis.opendocument.spreadsheet-flat-xml",
    ".fodp": "application/vnd.oasis.opendocument.presentation-flat-xml",
    ".abw": "application/x-abiword",
    ".json": "application/json",
    ".xml": "application/xml",
    ".yaml": "application/x-yaml",
    ".yml": "application/x-yaml",
}

_FLAT_ODF_MIMETYPE = re.compile(rb'office:mimetype="(application/vnd\.oasis\.opendocument\.(?:text|spreadsheet|presentation))"')

_SNIFF_WINDOW = 8192
_BASE64_DELIMITER = ";base64,"


@dataclass(frozen=True)
class FileTypeInfo:
    """Result of classifying an uploaded file."""

    mime_type: str
    category: FileCategory
    extension: str
    original_filename: str
    base_filename: str


def _looks_like_text(content: bytes) -> bool:
    sample = content[:_SNIFF_WINDOW]
    if b"\x00" in sample:
        return False
    try:
        codecs.getincrementaldecoder("utf-8")().decode(sample, final=False)
        return True
    except UnicodeDecodeError:
        pass
    # Legacy 8-bit encodings: tolerate a small share of control characters
    controls = sum(1 for byte in sample if byte < 0x20 and byte not in (0x09, 0x0A, 0x0C, 0x0D))
    return controls <= len(sample) // 100


def _sniff_text_root(content: bytes) -> Optional[str]:
    """Recognize text formats that announce themselves in their first bytes."""
    head = content[:_SNIFF_WINDOW].lstrip(b"\xef\xbb\xbf \t\r\n")
    if head.startswith(b"{\\rtf"):
        return "text/rtf"
    lowered = head.lower()
    if lowered.startswith(b"<!doctype html") or lowered.startswith(b"<html"):
        return "text/html"
    if not head.startswith(b"<"):
        return None
    if b"<abiword" in head:
        return "application/x-abiword"
    if b"<office:document" in head:
        match = _FLAT_ODF_MIMETYPE.search(head)
        if match is not None:
            return f"{match.group(1).decode('ascii')}-flat-xml"
    return None


def sniff_mime_type(content: bytes, filename: Optional[str] = None) -> str:
    """Detect a MIME type from magic bytes, using the filename as a hint for text formats."""
    kind = filetype.guess(content) if content else None
    if kind is not None:
        return kind.mime

    if not _looks_like_text(content):
        return "application/octet-stream"

    mime_type = _sniff_text_root(content) or "text/plain"
    if mime_type == "text/plain" and filename:
        hinted = TEXT_EXTENSION_MIME_MAP.get(get_file_extension(filename))
        if hinted is not None:
            mime_type = hinted
    return mime_type


def is_classifiable(mime_type: str) -> bool:
    return any(mime_type in types for types, _ in _CATEGORY_PRIORITY)


def classify(mime_type: str) -> FileCategory:
    """Map a MIME type to its category, raising when no category accepts it."""
    for types, category in _CATEGORY_PRIORITY:
        if mime_type in types:
            return category
    raise UnsupportedMediaTypeError(f"Unsupported MIME type: {mime_type}")


def detect_file_type(content: bytes, filename: str) -> FileTypeInfo:
    """Classify an uploaded file from its bytes and original filename.

    Content sniffing runs first; when it lands outside the category tables, the
    lowercase filename extension is looked up instead.

    Args:
        content: Raw file bytes
        filename: Original filename as uploaded

    Returns:
        FileTypeInfo with MIME type, category, canonical extension and names

    Raises:
        InvalidArgumentError: If the filename is blank
        UnsupportedMediaTypeError: If no category accepts the detected type
    """
    if not filename or not filename.strip():
        raise InvalidArgumentError("filename cannot be blank")

    mime_type = sniff_mime_type(content, filename)

    if not is_classifiable(mime_type):
        fallback = EXTENSION_MIME_MAP.get(get_file_extension(filename))
        if fallback is not None:
            logger.warning(
                f"Sniffed '{mime_type}' for file '{filename}', "
                f"falling back to extension-based MIME type: {fallback}"
            )
            mime_type = fallback

    category = classify(mime_type)

    return FileTypeInfo(
        mime_type=mime_type,
        category=category,
        extension=MIME_EXTENSION_MAP.get(mime_type, ""),
        original_filename=filename,
        base_filename=strip_extension(filename),
    )


def to_data_uri(mime_type: str, content: bytes) -> str:
    """Encode bytes as ``data:<mime>;base64,<payload>``."""
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type}{_BASE64_DELIMITER}{encoded}"


def _split_data_uri(data_uri: str) -> Optional[str]:
    if not isinstance(data_uri, str) or not data_uri.startswith("data:"):
        return None
    parts = data_uri.split(_BASE64_DELIMITER)
    if len(parts) != 2:
        return None
    return parts[1]


def validate_data_uri(data_uri: str) -> bool:
    """Check that a data URI is structurally sound and carries valid base64."""
    payload = _split_data_uri(data_uri)
    if payload is None:
        return False
    try:
        base64.b64decode(payload, validate=True)
        return True
    except (ValueError, binascii.Error):
        return False


def decode_base64(data: str) -> bytes:
    """Decode a bare base64 payload."""
    if not data or not data.strip():
        raise InvalidArgumentError("base64 data cannot be blank")
    try:
        return base64.b64decode(data, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise InvalidArgumentError("invalid base64 data") from exc


def decode_data_uri(data_uri: str) -> bytes:
    """Extract the payload bytes of a data URI."""
    if not validate_data_uri(data_uri):
        raise InvalidArgumentError("Invalid base64 encoded URI format")
    return base64.b64decode(_split_data_uri(data_uri), validate=True)
