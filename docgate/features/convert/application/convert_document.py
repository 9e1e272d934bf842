"""Routes an uploaded file through the office, markdown and rasterizer converters."""

from typing import AsyncIterator

from docgate.features.convert.domain.entities import (
    ODT_MEDIA_TYPE,
    PDF_MEDIA_TYPE,
    ConvertedFile,
    PageImage,
    normalize_image_format,
)
from docgate.features.convert.domain.service_interface import OfficeConverter, PdfRasterizer
from docgate.features.convert.infrastructure.markdown_renderer import HTML_IMPORT_FILTER, render_full_html
from docgate.shared.exceptions import BadRequestError, UnsupportedMediaTypeError
from docgate.shared.file_types import FileCategory, FileTypeInfo, detect_file_type
from docgate.shared.value_objects import FileUpload
from docgate.core.logger import get_logger

logger = get_logger(__name__)

_PDF_SOURCE_CATEGORIES = frozenset({
    FileCategory.DOCUMENT,
    FileCategory.SPREADSHEET,
    FileCategory.PRESENTATION,
    FileCategory.PLAIN_TEXT,
})


class ConvertDocument:
    """Converts uploads to ODT, PDF or a lazy sequence of page images."""

    def __init__(self, office_converter: OfficeConverter, rasterizer: PdfRasterizer):
        self.office_converter = office_converter
        self.rasterizer = rasterizer

    async def to_odt(self, file_upload: FileUpload) -> ConvertedFile:
        """Convert a text document (or rendered Markdown) to ODT.

        Raises:
            BadRequestError: If the file already is an ODT document
            UnsupportedMediaTypeError: If the category cannot become ODT
            ConversionFailedError: If the office daemon fails
        """
        info = detect_file_type(file_upload.content, file_upload.filename)

        if info.category in (FileCategory.DOCUMENT, FileCategory.PLAIN_TEXT):
            if info.extension == ".odt":
                raise BadRequestError("File is already in ODT format")
            logger.info(f"Converting to ODT: {info.original_filename}")
            content = await self.office_converter.convert_to_odt(file_upload.content)
        elif info.category is FileCategory.MARKDOWN:
            logger.info(f"Converting Markdown to ODT via HTML: {info.original_filename}")
            html = render_full_html(file_upload.content, info.base_filename)
            content = await self.office_converter.convert_to_odt(html, input_filter=HTML_IMPORT_FILTER)
        else:
            raise UnsupportedMediaTypeError(f"Unsupported file type for ODT conversion: {info.original_filename}")

        return ConvertedFile(filename=f"{info.base_filename}.odt", content=content, media_type=ODT_MEDIA_TYPE)

    async def to_pdf(self, file_upload: FileUpload) -> ConvertedFile:
        """Convert an office document, text file or Markdown to PDF.

        Raises:
            BadRequestError: If the file already is a PDF
            UnsupportedMediaTypeError: If the category cannot become PDF
            ConversionFailedError: If the office daemon fails
        """
        info = detect_file_type(file_upload.content, file_upload.filename)

        if info.category is FileCategory.PDF:
            raise BadRequestError("File is already in PDF format")
        content = await self.office_to_pdf(file_upload.content, info, "PDF conversion")

        return ConvertedFile(filename=f"{info.base_filename}.pdf", content=content, media_type=PDF_MEDIA_TYPE)

    async def to_page_images(self, file_upload: FileUpload, image_format: str = "png", dpi: int = 150) -> AsyncIterator[PageImage]:
        """Render every page of the upload, converting it to PDF first when needed.

        Validation and the office conversion happen on the first iteration, so a
        caller that primes the iterator sees those failures before streaming.
        """
        normalize_image_format(image_format)
        if dpi <= 0:
            raise BadRequestError(f"dpi must be positive, got {dpi}")

        info = detect_file_type(file_upload.content, file_upload.filename)

        if info.category is FileCategory.PDF:
            logger.debug(f"File is already PDF: {info.original_filename}")
            pdf_bytes = file_upload.content
        else:
            pdf_bytes = await self.office_to_pdf(file_upload.content, info, "image conversion")

        logger.info(f"Converting to images: {info.original_filename} (format={image_format}, dpi={dpi})")
        pages = self.rasterizer.rasterize(pdf_bytes, image_format, dpi)
        try:
            async for page in pages:
                yield page
        finally:
            await pages.aclose()

    async def office_to_pdf(self, content: bytes, info: FileTypeInfo, purpose: str = "PDF conversion") -> bytes:
        """Convert any office, text or Markdown category to PDF; other categories are unsupported."""
        if info.category in _PDF_SOURCE_CATEGORIES:
            logger.info(f"Converting {info.original_filename} to PDF")
            return await self.office_converter.convert_to_pdf(content)
        if info.category is FileCategory.MARKDOWN:
            logger.info(f"Converting Markdown {info.original_filename} to PDF via HTML")
            html = render_full_html(content, info.base_filename)
            return await self.office_converter.convert_to_pdf(html, input_filter=HTML_IMPORT_FILTER)
        raise UnsupportedMediaTypeError(f"Unsupported file type for {purpose}: {info.original_filename}")
