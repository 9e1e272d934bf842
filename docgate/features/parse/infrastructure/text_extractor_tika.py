"""Plain text extraction with Apache Tika, used when no parser back-end is configured."""

import asyncio
from io import BytesIO
from typing import Optional

from docgate.features.parse.domain.service_interface import TextExtractor
from docgate.shared.exceptions import TextExtractionFailedError
from docgate.core.config import Settings, settings
from docgate.core.logger import get_logger

logger = get_logger(__name__)


class TikaTextExtractor(TextExtractor):
    """
    Extracts text through tika-python.
    Without a configured endpoint, tika-python starts and talks to its own local Tika server.
    """

    def __init__(self, server_endpoint: Optional[str] = None, timeout: float = 120.0):
        self.server_endpoint = server_endpoint
        self.timeout = timeout

    async def extract_text(self, content: bytes, filename: str) -> str:
        logger.info(f"Extracting text with Tika: {filename}")
        try:
            parsed = await asyncio.wait_for(asyncio.to_thread(self._parse, content), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise TextExtractionFailedError(f"Text extraction timed out after {self.timeout}s") from e
        except Exception as e:
            logger.error(f"Tika failed to extract text from {filename}: {e}", exc_info=True)
            raise TextExtractionFailedError("Failed to extract text from document") from e

        status = parsed.get("status")
        if status != 200:
            raise TextExtractionFailedError(f"Failed to extract text from document: Tika returned status {status}")

        text = (parsed.get("content") or "").strip()
        if not text:
            logger.warning(f"tika.parser got empty content from {filename}.")
        return text

    def _parse(self, content: bytes) -> dict:
        from tika import parser as tika_parser

        options = {"requestOptions": {"timeout": self.timeout}}
        if self.server_endpoint:
            options["serverEndpoint"] = self.server_endpoint
        return tika_parser.from_buffer(BytesIO(content), **options)


def get_text_extractor(app_settings: Optional[Settings] = None) -> TikaTextExtractor:
    """Factory function to create TikaTextExtractor."""
    config = (app_settings or settings).extractor
    return TikaTextExtractor(
        server_endpoint=config.tika_server_endpoint,
        timeout=config.timeout.total_seconds(),
    )
