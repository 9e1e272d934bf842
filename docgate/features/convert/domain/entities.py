"""Domain entities for the convert feature."""

from dataclasses import dataclass, field
from typing import Dict, Tuple

from docgate.shared.exceptions import BadRequestError


ODT_MEDIA_TYPE = "application/vnd.oasis.opendocument.text"
PDF_MEDIA_TYPE = "application/pdf"

# Accepted request format -> (pdftoppm format, output file extension)
IMAGE_FORMATS: Dict[str, Tuple[str, str]] = {
    "png": ("png", ".png"),
    "jpg": ("jpeg", ".jpg"),
    "jpeg": ("jpeg", ".jpg"),
    "webp": ("webp", ".webp"),
}


def normalize_image_format(image_format: str) -> str:
    """Map a requested format onto the rasterizer's name (``jpg`` becomes ``jpeg``)."""
    normalized = (image_format or "").strip().lower()
    if normalized not in IMAGE_FORMATS:
        raise BadRequestError(
            f"Unsupported image format '{image_format}'. Supported formats: {', '.join(IMAGE_FORMATS)}"
        )
    return IMAGE_FORMATS[normalized][0]


def image_file_extension(image_format: str) -> str:
    return IMAGE_FORMATS[normalize_image_format(image_format)][1]


@dataclass(frozen=True)
class PageImage:
    """One rendered PDF page."""

    page: int
    format: str
    content: bytes = field(repr=False)
    total_pages: int

    def __post_init__(self):
        if not 1 <= self.page <= self.total_pages:
            raise ValueError(f"page {self.page} outside 1..{self.total_pages}")

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def mime_type(self) -> str:
        return f"image/{self.format}"


@dataclass(frozen=True)
class ConvertedFile:
    """A converted document ready to be sent back as a download."""

    filename: str
    content: bytes = field(repr=False)
    media_type: str
