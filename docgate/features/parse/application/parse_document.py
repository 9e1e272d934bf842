"""Turns an uploaded file into Markdown with the pipeline of the active parser profile."""

from typing import List, Optional

from docgate.features.convert.application.convert_document import ConvertDocument
from docgate.features.parse.application.substitute_embedded_images import (
    SubstituteEmbeddedImages,
    replace_embedded_images_with_placeholders,
)
from docgate.features.parse.domain.entities import PAGE_SEPARATOR, ImageExportMode, ParserProfile, ParseResult
from docgate.features.parse.domain.service_interface import StructuredParser, TextExtractor, VisionOCR
from docgate.features.parse.infrastructure.docling_remote_service import is_supported
from docgate.shared.exceptions import TextExtractionFailedError, UnsupportedMediaTypeError
from docgate.shared.file_types import FileCategory, FileTypeInfo, detect_file_type, to_data_uri
from docgate.shared.value_objects import FileUpload
from docgate.core.logger import get_logger

logger = get_logger(__name__)

_OFFICE_CATEGORIES = frozenset({
    FileCategory.DOCUMENT,
    FileCategory.SPREADSHEET,
    FileCategory.PRESENTATION,
})


class ParseDocument:
    """
    Routes one upload through the back-ends of the active profile.

    HYBRID: structured parse with embedded images, then OCR of every image.
    STRUCTURED_ONLY: structured parse, images become placeholders.
    VLM_ONLY: everything is rendered to page images and OCR'd page by page.
    FALLBACK_TEXT: plain text extraction, no OCR at all.
    """

    def __init__(
        self,
        profile: ParserProfile,
        converter: ConvertDocument,
        structured_parser: Optional[StructuredParser] = None,
        vlm: Optional[VisionOCR] = None,
        text_extractor: Optional[TextExtractor] = None,
        substitutor: Optional[SubstituteEmbeddedImages] = None,
        image_format: str = "png",
        default_prompt: Optional[str] = None,
    ):
        self.profile = profile
        self.converter = converter
        self.structured_parser = structured_parser
        self.vlm = vlm
        self.text_extractor = text_extractor
        self.substitutor = substitutor
        self.image_format = image_format
        self.default_prompt = default_prompt

    async def execute(self, file_upload: FileUpload, dpi: int = 150) -> ParseResult:
        """
        Parse an upload to Markdown.

        Args:
            file_upload: Validated upload
            dpi: Resolution for page rendering (VLM_ONLY only)

        Returns:
            ParseResult carrying the original filename and non-empty Markdown

        Raises:
            UnsupportedMediaTypeError: If the profile has no pipeline for the category
            TextExtractionFailedError: If the pipeline produced no text
            ParseError, VLMError, ConversionFailedError, ImageConversionFailedError: On back-end failures
        """
        info = detect_file_type(file_upload.content, file_upload.filename)
        logger.info(f"Parsing {info.original_filename} ({info.mime_type}, {info.category.value}) with profile {self.profile.value}")

        if self.profile is ParserProfile.HYBRID:
            markdown = await self._parse_hybrid(file_upload, info)
        elif self.profile is ParserProfile.STRUCTURED_ONLY:
            markdown = await self._parse_structured(file_upload, info)
        elif self.profile is ParserProfile.VLM_ONLY:
            markdown = await self._parse_vlm(file_upload, info, dpi)
        else:
            markdown = await self._parse_fallback(file_upload, info)

        if not markdown or not markdown.strip():
            raise TextExtractionFailedError(f"No text could be extracted from {info.original_filename}")

        logger.info(f"Parsed {info.original_filename} into {len(markdown)} characters of markdown")
        return ParseResult(filename=file_upload.filename, markdown=markdown)

    # --- Profiles ---
    async def _parse_hybrid(self, file_upload: FileUpload, info: FileTypeInfo) -> str:
        category = info.category
        if category is FileCategory.PLAIN_TEXT:
            raise UnsupportedMediaTypeError(f"Plain text files not supported: {info.original_filename}")
        if category is FileCategory.MARKDOWN:
            logger.info(f"Markdown file, replacing embedded images with VLM OCR: {info.original_filename}")
            return await self.substitutor.execute(_decode_text(file_upload.content))
        if category is FileCategory.IMAGE:
            logger.info(f"Image file, OCR with VLM directly: {info.original_filename}")
            return await self._ocr_image(file_upload.content, info.mime_type)

        markdown = await self._structured_markdown(file_upload, info, ImageExportMode.EMBEDDED)
        return await self.substitutor.execute(markdown)

    async def _parse_structured(self, file_upload: FileUpload, info: FileTypeInfo) -> str:
        category = info.category
        if category is FileCategory.PLAIN_TEXT:
            raise UnsupportedMediaTypeError(f"Plain text files not supported: {info.original_filename}")
        if category is FileCategory.MARKDOWN:
            logger.info(f"Markdown file, replacing embedded images with placeholders: {info.original_filename}")
            return replace_embedded_images_with_placeholders(_decode_text(file_upload.content))
        if category is FileCategory.IMAGE:
            if not is_supported(info.mime_type):
                raise UnsupportedMediaTypeError(f"Image type not supported by the document parser: {info.mime_type}")
            logger.info(f"Parsing image with the document parser: {info.original_filename}")
            result = await self.structured_parser.parse(file_upload.content, file_upload.filename, ImageExportMode.EMBEDDED)
            return result.markdown

        return await self._structured_markdown(file_upload, info, ImageExportMode.PLACEHOLDER)

    async def _parse_vlm(self, file_upload: FileUpload, info: FileTypeInfo, dpi: int) -> str:
        category = info.category
        if category is FileCategory.PLAIN_TEXT:
            raise UnsupportedMediaTypeError(f"Plain text files not supported: {info.original_filename}")
        if category is FileCategory.IMAGE:
            logger.info(f"Image file, OCR directly: {info.original_filename}")
            return await self._ocr_image(file_upload.content, info.mime_type)

        logger.info(f"Rendering pages for OCR (dpi={dpi}): {info.original_filename}")
        page_texts: List[str] = []
        pages = self.converter.to_page_images(file_upload, self.image_format, dpi)
        try:
            async for page in pages:
                page_texts.append(await self._ocr_image(page.content, page.mime_type))
                logger.debug(f"OCR'd page {page.page}/{page.total_pages}")
        finally:
            await pages.aclose()

        logger.info(f"OCR'd {len(page_texts)} pages of {info.original_filename}")
        return PAGE_SEPARATOR.join(page_texts)

    async def _parse_fallback(self, file_upload: FileUpload, info: FileTypeInfo) -> str:
        category = info.category
        if category in (FileCategory.PLAIN_TEXT, FileCategory.MARKDOWN):
            logger.info(f"Text file, returning as-is: {info.original_filename}")
            return _decode_text(file_upload.content)
        if category is FileCategory.IMAGE:
            raise UnsupportedMediaTypeError(f"Image files not supported without VLM: {info.original_filename}")

        return await self.text_extractor.extract_text(file_upload.content, file_upload.filename)

    # --- Building blocks ---
    async def _structured_markdown(self, file_upload: FileUpload, info: FileTypeInfo, mode: ImageExportMode) -> str:
        """Parse office documents and PDFs, converting to PDF first when the parser can't read the format."""
        if info.category is not FileCategory.PDF and info.category not in _OFFICE_CATEGORIES:
            raise UnsupportedMediaTypeError(f"Unsupported file type for parsing: {info.original_filename}")

        if is_supported(info.mime_type):
            logger.info(f"Parsing with the document parser: {info.original_filename}")
            result = await self.structured_parser.parse(file_upload.content, file_upload.filename, mode)
        else:
            logger.info(f"Converting to PDF, then parsing: {info.original_filename}")
            pdf_bytes = await self.converter.office_to_pdf(file_upload.content, info, "parsing")
            result = await self.structured_parser.parse(pdf_bytes, f"{info.base_filename}.pdf", mode)
        return result.markdown

    async def _ocr_image(self, content: bytes, mime_type: str) -> str:
        return await self.vlm.ocr(to_data_uri(mime_type, content), self.default_prompt)


def _decode_text(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")
