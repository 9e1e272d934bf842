"""PDF page rendering with the poppler command line tools."""

import asyncio
import os
import re
import shutil
import tempfile
from typing import AsyncIterator, List, Optional, Tuple

from docgate.features.convert.domain.entities import PageImage, image_file_extension, normalize_image_format
from docgate.features.convert.domain.service_interface import PdfRasterizer
from docgate.shared.exceptions import BadRequestError, ImageConversionFailedError
from docgate.core.config import Settings, settings
from docgate.core.logger import get_logger

logger = get_logger(__name__)

PAGE_COUNT_PATTERN = re.compile(r"^Pages:\s+(\d+)", re.MULTILINE)


class PopplerRasterizer(PdfRasterizer):
    """
    Renders PDFs page by page with ``pdfinfo`` and ``pdftoppm``.
    Each page gets its own subprocess, so only one rendered page is held in memory at a time.
    """

    def __init__(
        self,
        pdfinfo_path: str = "pdfinfo",
        pdftoppm_path: str = "pdftoppm",
        page_count_timeout: float = 30.0,
        page_timeout: float = 60.0,
        temp_root: Optional[str] = None,
    ):
        self.pdfinfo_path = pdfinfo_path
        self.pdftoppm_path = pdftoppm_path
        self.page_count_timeout = page_count_timeout
        self.page_timeout = page_timeout
        self.temp_root = temp_root

    async def rasterize(self, pdf_bytes: bytes, image_format: str = "png", dpi: int = 150) -> AsyncIterator[PageImage]:
        fmt = normalize_image_format(image_format)
        extension = image_file_extension(image_format)
        if dpi <= 0:
            raise BadRequestError(f"dpi must be positive, got {dpi}")

        logger.info(f"Converting PDF to images (format={fmt}, dpi={dpi})")

        input_path = None
        work_dir = None
        try:
            fd, input_path = tempfile.mkstemp(prefix="input-", suffix=".pdf", dir=self.temp_root)
            with os.fdopen(fd, "wb") as handle:
                handle.write(pdf_bytes)
            work_dir = tempfile.mkdtemp(prefix="pdf-images-", dir=self.temp_root)

            total_pages = await self._count_pages(input_path)
            logger.debug(f"PDF has {total_pages} pages")

            for page in range(1, total_pages + 1):
                content = await self._render_page(input_path, page, fmt, extension, dpi, work_dir)
                logger.debug(f"Converted page {page}/{total_pages}")
                yield PageImage(page=page, format=fmt, content=content, total_pages=total_pages)

            logger.info(f"Converted PDF to {total_pages} images")
        except OSError as e:
            raise ImageConversionFailedError(f"PDF to image conversion failed: {e}") from e
        finally:
            self._cleanup(input_path, work_dir)

    async def _count_pages(self, pdf_path: str) -> int:
        returncode, stdout, stderr = await self._run([self.pdfinfo_path, pdf_path], self.page_count_timeout)
        if returncode != 0:
            raise ImageConversionFailedError(
                f"pdfinfo failed with exit code {returncode}: {stderr.decode(errors='replace').strip()}"
            )

        match = PAGE_COUNT_PATTERN.search(stdout.decode(errors="replace"))
        if match is None:
            raise ImageConversionFailedError("Could not find page count in pdfinfo output")
        return int(match.group(1))

    async def _render_page(
        self,
        pdf_path: str,
        page: int,
        fmt: str,
        extension: str,
        dpi: int,
        work_dir: str,
    ) -> bytes:
        output_prefix = os.path.join(work_dir, "page")
        command = [
            self.pdftoppm_path,
            f"-{fmt}",
            "-r", str(dpi),
            "-f", str(page),
            "-l", str(page),
            "-singlefile",
            pdf_path,
            output_prefix,
        ]

        returncode, _, stderr = await self._run(command, self.page_timeout)
        if returncode != 0:
            raise ImageConversionFailedError(
                f"pdftoppm failed for page {page}: {stderr.decode(errors='replace').strip()}"
            )

        image_path = output_prefix + extension
        if not os.path.exists(image_path):
            raise ImageConversionFailedError(f"Output image not found for page {page}")

        with open(image_path, "rb") as handle:
            content = handle.read()
        os.unlink(image_path)
        return content

    async def _run(self, command: List[str], timeout: float) -> Tuple[int, bytes, bytes]:
        """Run a command, draining stdout and stderr together before collecting the exit status."""
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ImageConversionFailedError(f"Failed to start {command[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            await self._kill(process)
            raise ImageConversionFailedError(f"{os.path.basename(command[0])} timed out after {timeout}s") from e
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        return process.returncode, stdout, stderr

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()

    @staticmethod
    def _cleanup(input_path: Optional[str], work_dir: Optional[str]) -> None:
        if input_path:
            try:
                os.unlink(input_path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to delete {input_path}: {e}")
        if work_dir:
            try:
                shutil.rmtree(work_dir)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to delete {work_dir}: {e}")


def get_pdf_rasterizer(app_settings: Optional[Settings] = None) -> PopplerRasterizer:
    """Factory function to create PopplerRasterizer."""
    config = (app_settings or settings).rasterizer
    return PopplerRasterizer(
        pdfinfo_path=config.pdfinfo_path,
        pdftoppm_path=config.pdftoppm_path,
        page_count_timeout=config.page_count_timeout.total_seconds(),
        page_timeout=config.page_timeout.total_seconds(),
    )
