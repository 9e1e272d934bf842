"""Pydantic schemas (DTOs) for the convert API."""

from pydantic import BaseModel

from docgate.features.convert.domain.entities import PageImage
from docgate.shared.file_types import to_data_uri


class PageImageResponse(BaseModel):
    """One NDJSON line of the page image stream."""
    page: int
    encoded_uri: str
    size: int
    total_pages: int

    @classmethod
    def from_page(cls, page: PageImage) -> "PageImageResponse":
        return cls(
            page=page.page,
            encoded_uri=to_data_uri(page.mime_type, page.content),
            size=page.size,
            total_pages=page.total_pages,
        )
