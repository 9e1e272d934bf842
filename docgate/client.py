"""Synchronous HTTP client for the gateway endpoints."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

import httpx

from docgate.shared.file_types import decode_data_uri
from docgate.core.logger import get_logger

logger = get_logger(__name__)

FileInput = Union[str, Path, bytes]


class GatewayClientError(Exception):
    """Raised when the gateway answers with a non-2xx status."""

    def __init__(self, status_code: int, error_code: str, message: str):
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        super().__init__(f"{status_code} {error_code}: {message}")


@dataclass(frozen=True)
class ClientPage:
    """One page image received from ``/convert/images``."""

    page: int
    total_pages: int
    size: int
    encoded_uri: str = field(repr=False)

    @property
    def content(self) -> bytes:
        return decode_data_uri(self.encoded_uri)


@dataclass(frozen=True)
class ClientParseResult:
    filename: str
    markdown: str


class GatewayClient:
    """
    Mirrors the gateway's convert and parse endpoints.

    Files can be given as a path or as raw bytes; raw bytes need a filename.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        api_prefix: str = "/api",
        timeout: float = 600.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self._client = httpx.Client(
            base_url=f"{self.base_url}{api_prefix}",
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def __enter__(self) -> "GatewayClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # --- Convert ---
    def health(self) -> str:
        response = self._client.get("/convert/health")
        self._raise_for_error(response)
        return response.text

    def convert_to_odt(self, file: FileInput, filename: Optional[str] = None) -> bytes:
        response = self._client.post("/convert/odt", files=self._files(file, filename))
        self._raise_for_error(response)
        return response.content

    def convert_to_pdf(self, file: FileInput, filename: Optional[str] = None) -> bytes:
        response = self._client.post("/convert/pdf", files=self._files(file, filename))
        self._raise_for_error(response)
        return response.content

    def convert_to_images(
        self,
        file: FileInput,
        filename: Optional[str] = None,
        image_format: str = "png",
        dpi: int = 150,
    ) -> Iterator[ClientPage]:
        """Yield pages as the server streams them."""
        params = {"format": image_format, "dpi": dpi}
        with self._client.stream("POST", "/convert/images", files=self._files(file, filename), params=params) as response:
            if response.is_error:
                response.read()
                self._raise_for_error(response)
            for line in response.iter_lines():
                if not line.strip():
                    continue
                data = json.loads(line)
                yield ClientPage(
                    page=data["page"],
                    total_pages=data["total_pages"],
                    size=data["size"],
                    encoded_uri=data["encoded_uri"],
                )

    # --- Parse ---
    def parse(self, file: FileInput, filename: Optional[str] = None, dpi: int = 150) -> ClientParseResult:
        response = self._client.post("/parse/parse", files=self._files(file, filename), params={"dpi": dpi})
        self._raise_for_error(response)
        data = response.json()
        return ClientParseResult(filename=data["filename"], markdown=data["markdown"])

    def parser_health(self) -> dict:
        response = self._client.get("/parse/health")
        self._raise_for_error(response)
        return response.json()

    # --- Helpers ---
    @staticmethod
    def _files(file: FileInput, filename: Optional[str]) -> dict:
        if isinstance(file, bytes):
            if not filename:
                raise ValueError("filename is required when uploading raw bytes")
            return {"file": (filename, file, "application/octet-stream")}
        path = Path(file)
        return {"file": (filename or path.name, path.read_bytes(), "application/octet-stream")}

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        if not response.is_error:
            return
        try:
            body = response.json()
            error_code = body.get("error", "UNKNOWN")
            message = body.get("message", response.text)
        except ValueError:
            error_code, message = "UNKNOWN", response.text
        logger.debug(f"Gateway returned {response.status_code} {error_code}: {message}")
        raise GatewayClientError(response.status_code, error_code, message)
