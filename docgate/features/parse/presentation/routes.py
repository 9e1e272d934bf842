"""API routes for the parse feature."""

from fastapi import APIRouter, Depends, File, Query, UploadFile

from docgate.features.convert.application.convert_document import ConvertDocument
from docgate.features.parse.application.parse_document import ParseDocument
from docgate.features.parse.application.substitute_embedded_images import SubstituteEmbeddedImages
from docgate.features.parse.presentation.schemas import BackendStatus, ParseResponse, ParserHealthResponse
from docgate.shared.value_objects import read_upload
from docgate.core.backend_manager import BackendManager, get_backend_manager
from docgate.core.config import Settings, get_settings
from docgate.core.logger import get_logger

logger = get_logger(__name__)


# --- Dependency Injection ---
def get_parse_use_case(
    backends: BackendManager = Depends(get_backend_manager),
    settings: Settings = Depends(get_settings),
) -> ParseDocument:
    """Dependency to provide the ParseDocument use case for the active profile."""
    vlm_config = settings.parser.vlm
    substitutor = None
    if backends.vlm is not None:
        substitutor = SubstituteEmbeddedImages(backends.vlm, vlm_config.embedded_image_prompt)

    return ParseDocument(
        profile=backends.profile,
        converter=ConvertDocument(
            office_converter=backends.office_converter,
            rasterizer=backends.rasterizer,
        ),
        structured_parser=backends.docling,
        vlm=backends.vlm,
        text_extractor=backends.text_extractor,
        substitutor=substitutor,
        image_format=vlm_config.image_format,
        default_prompt=vlm_config.default_prompt,
    )


router = APIRouter(tags=["Parse"])


@router.post("/parse", response_model=ParseResponse)
async def parse_document(
    file: UploadFile = File(...),
    dpi: int = Query(150),
    use_case: ParseDocument = Depends(get_parse_use_case),
    settings: Settings = Depends(get_settings),
):
    """
    Parses a document into Markdown.

    Args:
        file: The document to parse
        dpi: Page rendering resolution when pages are OCR'd

    Returns:
        ParseResponse with the original filename and the Markdown
    """
    file_upload = await read_upload(file, settings.max_upload_size_mb)
    logger.info(f"Received parse request for file: {file_upload.filename} ({file_upload.get_size_mb()}MB)")

    result = await use_case.execute(file_upload, dpi)
    return ParseResponse.from_result(result)


@router.get("/health", response_model=ParserHealthResponse)
async def parser_health(backends: BackendManager = Depends(get_backend_manager)):
    """Reports the active parser profile and probes the configured back-ends."""
    structured = await backends.docling.health_check() if backends.docling is not None else []
    vlm = backends.vlm.describe() if backends.vlm is not None else []

    return ParserHealthResponse(
        profile=backends.profile.value,
        structured=[BackendStatus(**entry) for entry in structured],
        vlm=[BackendStatus(**entry) for entry in vlm],
    )
