"""
Client for a unoserver office daemon.
LibreOffice does the actual work; this adapter only ships bytes over its XML-RPC interface.
"""
import asyncio
from typing import Optional

from unoserver.client import UnoClient

from docgate.features.convert.domain.service_interface import OfficeConverter
from docgate.shared.exceptions import ConversionFailedError
from docgate.core.config import Settings, settings
from docgate.core.logger import get_logger

logger = get_logger(__name__)


class UnoOfficeConverter(OfficeConverter):
    """Converts documents to ODT or PDF through a running unoserver instance."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 2003,
        timeout: float = 120.0,
        max_output_size: int = 64 * 1024 * 1024,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.max_output_size = max_output_size
        self.client = UnoClient(server=host, port=str(port))

    async def convert_to_odt(self, content: bytes, input_filter: Optional[str] = None) -> bytes:
        return await self._convert(content, "odt", input_filter)

    async def convert_to_pdf(self, content: bytes, input_filter: Optional[str] = None) -> bytes:
        return await self._convert(content, "pdf", input_filter)

    async def _convert(self, content: bytes, target: str, input_filter: Optional[str]) -> bytes:
        logger.info(f"Converting {len(content)} bytes to {target.upper()} via unoserver at {self.host}:{self.port}")

        options = {"indata": content, "convert_to": target}
        if input_filter:
            options["infiltername"] = input_filter

        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self.client.convert, **options),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConversionFailedError(f"Conversion to {target.upper()} timed out after {self.timeout}s") from e
        except Exception as e:
            logger.error(f"Office conversion to {target} failed: {e}", exc_info=True)
            raise ConversionFailedError(f"Conversion to {target.upper()} failed: {e}") from e

        if not result:
            raise ConversionFailedError(f"Conversion to {target.upper()} produced no output")
        if len(result) > self.max_output_size:
            raise ConversionFailedError(
                f"Conversion to {target.upper()} output exceeds {self.max_output_size} bytes"
            )

        logger.info(f"Successfully converted to {target.upper()} ({len(result)} bytes)")
        return result


def get_office_converter(app_settings: Optional[Settings] = None) -> UnoOfficeConverter:
    """Factory function to create UnoOfficeConverter."""
    config = (app_settings or settings).converter
    return UnoOfficeConverter(
        host=config.host,
        port=config.port,
        timeout=config.timeout.total_seconds(),
        max_output_size=config.max_buffer_size,
    )
