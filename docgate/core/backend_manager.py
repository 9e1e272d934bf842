# docgate/core/backend_manager.py

from typing import Optional

from docgate.features.convert.domain.service_interface import OfficeConverter, PdfRasterizer
from docgate.features.convert.infrastructure.office_converter_uno import get_office_converter
from docgate.features.convert.infrastructure.pdf_rasterizer_poppler import get_pdf_rasterizer
from docgate.features.parse.domain.entities import ParserProfile, select_profile
from docgate.features.parse.infrastructure.docling_remote_service import RemoteDoclingService, get_remote_docling_service
from docgate.features.parse.infrastructure.text_extractor_tika import TikaTextExtractor, get_text_extractor
from docgate.features.parse.infrastructure.vlm_chat_service import VLMChatService, get_vlm_chat_service
from docgate.core.config import Settings, settings
from docgate.core.logger import get_logger

logger = get_logger(__name__)


class BackendManager:
    """
    Holds the process-wide back-end clients and the parser profile chosen at startup.
    """
    def __init__(self):
        self.profile: Optional[ParserProfile] = None
        self.office_converter: Optional[OfficeConverter] = None
        self.rasterizer: Optional[PdfRasterizer] = None
        self.docling: Optional[RemoteDoclingService] = None
        self.vlm: Optional[VLMChatService] = None
        self.text_extractor: Optional[TikaTextExtractor] = None

    @property
    def loaded(self) -> bool:
        return self.profile is not None

    def load_backends(self, app_settings: Optional[Settings] = None):
        """
        Builds every back-end client from settings and selects the parser profile.
        Only the clients the selected profile needs are created.
        """
        app_settings = app_settings or settings
        logger.info("Loading back-end clients...")

        self.office_converter = get_office_converter(app_settings)
        logger.info(f"Office converter: unoserver at {app_settings.converter.host}:{app_settings.converter.port}")

        self.rasterizer = get_pdf_rasterizer(app_settings)
        logger.info(f"PDF rasterizer: {app_settings.rasterizer.pdftoppm_path}")

        parser_config = app_settings.parser
        self.profile = select_profile(parser_config.docling.configured, parser_config.vlm.configured)

        if parser_config.docling.configured:
            self.docling = get_remote_docling_service(app_settings)
        if parser_config.vlm.configured:
            self.vlm = get_vlm_chat_service(app_settings)
        if self.profile is ParserProfile.FALLBACK_TEXT:
            self.text_extractor = get_text_extractor(app_settings)
            logger.info("No document parser or VLM configured, falling back to plain text extraction")

        logger.info(f"Parser profile: {self.profile.value}")
        logger.info("All back-end clients loaded.")

    async def close(self):
        """Closes the HTTP connection pools of the remote clients."""
        if self.docling is not None:
            await self.docling.close()
        if self.vlm is not None:
            await self.vlm.close()
        self.docling = None
        self.vlm = None
        self.profile = None
        logger.info("Back-end clients closed.")


# Create a single global instance of the backend manager
backend_manager = BackendManager()


def get_backend_manager() -> BackendManager:
    if not backend_manager.loaded:
        backend_manager.load_backends()
    return backend_manager
