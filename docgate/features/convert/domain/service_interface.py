"""Interfaces for the external converters used by the gateway."""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from docgate.features.convert.domain.entities import PageImage


class OfficeConverter(ABC):
    """Converts office documents through an office suite daemon."""

    @abstractmethod
    async def convert_to_odt(self, content: bytes, input_filter: Optional[str] = None) -> bytes:
        """Convert a document to OpenDocument Text."""
        pass

    @abstractmethod
    async def convert_to_pdf(self, content: bytes, input_filter: Optional[str] = None) -> bytes:
        """Convert a document to PDF."""
        pass


class PdfRasterizer(ABC):
    """Renders PDF pages to images."""

    @abstractmethod
    def rasterize(self, pdf_bytes: bytes, image_format: str = "png", dpi: int = 150) -> AsyncIterator[PageImage]:
        """Yield one PageImage per page, in ascending page order.

        The sequence is lazy: a page is rendered only when it is requested, and
        closing the iterator releases every temporary resource.
        """
        pass
