"""
Client for a pool of remote docling-serve instances.
Documents are sent as multipart uploads and come back as Markdown.
"""
import asyncio
import json
import re
from typing import Dict, FrozenSet, List, Optional

import httpx

from docgate.features.parse.domain.entities import ImageExportMode, ParseResult
from docgate.features.parse.domain.service_interface import StructuredParser
from docgate.shared.endpoint_pool import EndpointPool
from docgate.shared.exceptions import InvalidArgumentError, ParseError
from docgate.shared.helpers import read_limited
from docgate.core.config import Settings, settings
from docgate.core.logger import get_logger

logger = get_logger(__name__)

# Groups: 1=alt text, 2=image MIME type, 3=base64 payload
EMBEDDED_IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(data:(image/[^;]+);base64,([^)]+)\)")

# Formats docling parses without an office conversion first
SUPPORTED_MIME_TYPES: FrozenSet[str] = frozenset({
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/markdown",
    "text/x-markdown",
    "text/html",
    "application/xhtml+xml",
    "text/csv",
    "image/png",
    "image/jpeg",
    "image/tiff",
    "image/bmp",
    "image/webp",
})

CONVERT_PATH = "/v1/convert/file"
HEALTH_PATH = "/health"


def is_supported(mime_type: str) -> bool:
    """Whether docling accepts this MIME type as-is."""
    return mime_type in SUPPORTED_MIME_TYPES


class RemoteDoclingService(StructuredParser):
    """
    Client for remote docling-serve processing services.
    Requests are spread round-robin over the configured base URLs.
    """

    def __init__(
        self,
        base_urls: List[str],
        timeout: float = 300.0,
        max_buffer_size: int = 16 * 1024 * 1024,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.pool = EndpointPool([url.rstrip('/') for url in base_urls])
        self.timeout = timeout
        self.max_buffer_size = max_buffer_size

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            limits=httpx.Limits(
                max_keepalive_connections=20,
                max_connections=100,
                keepalive_expiry=30.0
            )
        )
        logger.info(f"RemoteDoclingService initialized with {len(self.pool)} servers: {list(self.pool)}")

    async def parse(
        self,
        content: bytes,
        filename: str,
        image_mode: ImageExportMode = ImageExportMode.PLACEHOLDER,
    ) -> ParseResult:
        """
        Send a document to the next docling server and return its Markdown.

        Raises:
            InvalidArgumentError: If the content is empty or the filename blank
            ParseError: On network failure, timeout or an unexpected response
        """
        if not content:
            raise InvalidArgumentError("File bytes cannot be empty")
        if not filename or not filename.strip():
            raise InvalidArgumentError("Filename cannot be blank")

        mode = ImageExportMode(image_mode).value
        base_url = self.pool.next()
        logger.info(f"Sending {filename} ({len(content)} bytes, image_export_mode={mode}) to docling at {base_url}")

        try:
            body = await asyncio.wait_for(self._post(base_url, content, filename, mode), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Docling request for {filename} timed out after {self.timeout}s")
            raise ParseError(f"Docling request timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Docling service at {base_url} returned {e.response.status_code} for {filename}")
            raise ParseError(f"Failed to parse document: docling returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Docling service request failed: {e}")
            raise ParseError(f"Failed to parse document: {e}") from e
        except ValueError as e:
            raise ParseError(f"Failed to parse document: {e}") from e

        markdown = self._extract_markdown(body)
        logger.info(f"Received {len(markdown)} characters of markdown for {filename}")
        return ParseResult(filename=filename, markdown=markdown)

    async def _post(self, base_url: str, content: bytes, filename: str, mode: str) -> bytes:
        files = {
            'files': (filename, content, 'application/octet-stream')
        }
        data = {'image_export_mode': mode}

        async with self._client.stream("POST", f"{base_url}{CONVERT_PATH}", files=files, data=data) as response:
            response.raise_for_status()
            return await read_limited(response, self.max_buffer_size)

    @staticmethod
    def _extract_markdown(body: bytes) -> str:
        if not body or not body.strip():
            raise ParseError("Empty response from docling service")

        try:
            data = json.loads(body)
        except ValueError as e:
            raise ParseError(f"Invalid JSON from docling service: {e}") from e

        document = data.get("document") if isinstance(data, dict) else None
        if not isinstance(document, dict):
            raise ParseError("Empty response from docling service")

        md_content = document.get("md_content")
        if not isinstance(md_content, str):
            raise ParseError("Invalid response format: missing 'md_content' field")
        return md_content

    async def health_check(self) -> List[Dict[str, str]]:
        """
        Probe every configured docling server.

        Returns:
            One ``{"base_url", "status"}`` entry per server; failures are reported, not raised
        """
        results = []
        for base_url in self.pool:
            try:
                response = await self._client.get(f"{base_url}{HEALTH_PATH}", timeout=5.0)
                status = "ok" if response.status_code == 200 else f"error: HTTP {response.status_code}"
            except Exception as e:
                status = f"error: {e}"
            results.append({"base_url": base_url, "status": status})
        return results

    async def close(self):
        """Close the HTTP client connection pool."""
        await self._client.aclose()


def get_remote_docling_service(app_settings: Optional[Settings] = None) -> RemoteDoclingService:
    """Factory function to create RemoteDoclingService."""
    config = (app_settings or settings).parser.docling
    if not config.configured:
        raise ValueError("parser.docling.base_urls not configured in settings")
    return RemoteDoclingService(
        base_urls=config.base_urls,
        timeout=config.timeout.total_seconds(),
        max_buffer_size=config.max_buffer_size,
    )
