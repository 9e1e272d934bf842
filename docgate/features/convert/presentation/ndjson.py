"""Line-delimited JSON streaming of rendered pages."""

from typing import AsyncIterator, Optional

from docgate.features.convert.domain.entities import PageImage
from docgate.features.convert.presentation.schemas import PageImageResponse
from docgate.core.logger import get_logger

logger = get_logger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def encode_page_line(page: PageImage) -> bytes:
    return (PageImageResponse.from_page(page).model_dump_json() + "\n").encode("utf-8")


async def stream_page_images(
    pages: AsyncIterator[PageImage],
    first_page: Optional[PageImage] = None,
) -> AsyncIterator[bytes]:
    """Yield one JSON line per page; each chunk is sent (and flushed) on its own.

    ``first_page`` is a page the caller already pulled off ``pages`` to surface
    early failures before the response headers went out. Errors after that point
    propagate and cut the connection; no error line is appended.
    """
    streamed = 0
    try:
        if first_page is not None:
            yield encode_page_line(first_page)
            streamed += 1
        async for page in pages:
            yield encode_page_line(page)
            streamed += 1
            logger.debug(f"Streamed page {page.page}/{page.total_pages}")
        logger.info(f"Successfully streamed {streamed} pages")
    except Exception as e:
        logger.error(f"Page stream aborted after {streamed} pages: {e}", exc_info=True)
        raise
    finally:
        await pages.aclose()
