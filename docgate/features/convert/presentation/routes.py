"""API routes for the convert feature."""

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from fastapi.responses import PlainTextResponse, StreamingResponse

from docgate.features.convert.application.convert_document import ConvertDocument
from docgate.features.convert.domain.entities import ConvertedFile
from docgate.features.convert.presentation.ndjson import NDJSON_MEDIA_TYPE, stream_page_images
from docgate.shared.helpers import attachment_disposition
from docgate.shared.value_objects import read_upload
from docgate.core.backend_manager import BackendManager, get_backend_manager
from docgate.core.config import Settings, get_settings
from docgate.core.logger import get_logger

logger = get_logger(__name__)


# --- Dependency Injection ---
def get_convert_use_case(backends: BackendManager = Depends(get_backend_manager)) -> ConvertDocument:
    """Dependency to provide the ConvertDocument use case."""
    return ConvertDocument(
        office_converter=backends.office_converter,
        rasterizer=backends.rasterizer,
    )


router = APIRouter(tags=["Convert"])


def _download(converted: ConvertedFile) -> Response:
    return Response(
        content=converted.content,
        media_type=converted.media_type,
        headers={"Content-Disposition": attachment_disposition(converted.filename)},
    )


@router.get("/health", response_class=PlainTextResponse)
async def health():
    """Liveness probe for the converter."""
    return "OK"


@router.post("/odt")
async def convert_to_odt(
    file: UploadFile = File(...),
    use_case: ConvertDocument = Depends(get_convert_use_case),
    settings: Settings = Depends(get_settings),
):
    """Convert a document, text file or Markdown file to ODT."""
    file_upload = await read_upload(file, settings.max_upload_size_mb)
    logger.info(f"Received ODT conversion request for file: {file_upload.filename}")
    return _download(await use_case.to_odt(file_upload))


@router.post("/pdf")
async def convert_to_pdf(
    file: UploadFile = File(...),
    use_case: ConvertDocument = Depends(get_convert_use_case),
    settings: Settings = Depends(get_settings),
):
    """Convert an office document, text file or Markdown file to PDF."""
    file_upload = await read_upload(file, settings.max_upload_size_mb)
    logger.info(f"Received PDF conversion request for file: {file_upload.filename}")
    return _download(await use_case.to_pdf(file_upload))


@router.post("/images")
async def convert_to_images(
    file: UploadFile = File(...),
    format: str = Query("png"),
    dpi: int = Query(150),
    use_case: ConvertDocument = Depends(get_convert_use_case),
    settings: Settings = Depends(get_settings),
):
    """
    Render every page as an image and stream them as NDJSON, one line per page.

    The first page is produced before the response starts, so classification,
    office conversion and page counting failures still get a proper error status.
    """
    file_upload = await read_upload(file, settings.max_upload_size_mb)
    logger.info(f"Received image conversion request for file: {file_upload.filename} (format={format}, dpi={dpi})")

    pages = use_case.to_page_images(file_upload, format, dpi)
    first_page = await anext(pages, None)

    return StreamingResponse(stream_page_images(pages, first_page), media_type=NDJSON_MEDIA_TYPE)
