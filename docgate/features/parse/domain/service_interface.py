"""Interfaces for the parser back-ends."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from docgate.features.parse.domain.entities import ImageExportMode, ParseResult


class StructuredParser(ABC):
    """Converts a document to Markdown through a remote structured parser."""

    @abstractmethod
    async def parse(
        self,
        content: bytes,
        filename: str,
        image_mode: ImageExportMode = ImageExportMode.PLACEHOLDER,
    ) -> ParseResult:
        """Parse a document and return its Markdown."""
        pass

    @abstractmethod
    async def health_check(self) -> List[Dict[str, str]]:
        """Report liveness of every configured endpoint."""
        pass


class VisionOCR(ABC):
    """Extracts text from a single image with a vision-language model."""

    @abstractmethod
    async def ocr(self, data_uri: str, prompt: Optional[str] = None) -> str:
        """Return the model's text for the image; may be empty."""
        pass


class TextExtractor(ABC):
    """Plain text extraction for when no parser back-end is configured."""

    @abstractmethod
    async def extract_text(self, content: bytes, filename: str) -> str:
        """Return the document's plain text."""
        pass
