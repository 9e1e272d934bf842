"""Replaces base64 images embedded in Markdown with OCR text or placeholders."""

import re
from typing import List, Optional

from docgate.features.parse.domain.service_interface import VisionOCR
from docgate.features.parse.infrastructure.docling_remote_service import EMBEDDED_IMAGE_PATTERN
from docgate.shared.exceptions import InvalidArgumentError
from docgate.shared.file_types import decode_base64, to_data_uri
from docgate.core.config import DEFAULT_EMBEDDED_IMAGE_PROMPT
from docgate.core.logger import get_logger

logger = get_logger(__name__)

ALT_TEXT_PROMPT_TEMPLATE = (
    'This is an embedded image with alt text: "{alt}". '
    "Extract and describe all text, diagrams, charts, or visual content. "
    "Format the output as markdown."
)


class SubstituteEmbeddedImages:
    """
    OCR every ``![alt](data:image/...;base64,...)`` image and put the text in its place.
    An image that cannot be decoded or read keeps its original markup.
    """

    def __init__(self, vlm: VisionOCR, embedded_image_prompt: str = DEFAULT_EMBEDDED_IMAGE_PROMPT):
        self.vlm = vlm
        self.embedded_image_prompt = embedded_image_prompt

    def build_prompt(self, alt_text: str) -> str:
        if alt_text and alt_text.strip():
            return ALT_TEXT_PROMPT_TEMPLATE.format(alt=alt_text)
        return self.embedded_image_prompt

    async def execute(self, markdown: str) -> str:
        pieces: List[str] = []
        position = 0
        count = 0
        failures = 0

        for match in EMBEDDED_IMAGE_PATTERN.finditer(markdown):
            count += 1
            pieces.append(markdown[position:match.start()])
            position = match.end()
            replacement = await self._replace(match, count)
            if replacement is None:
                failures += 1
                replacement = match.group(0)
            pieces.append(replacement)

        if count == 0:
            return markdown

        pieces.append(markdown[position:])
        logger.info(f"Replaced {count - failures} of {count} embedded images with VLM results")
        return "".join(pieces)

    async def _replace(self, match: re.Match, index: int) -> Optional[str]:
        alt_text, mime_type, payload = match.group(1), match.group(2), match.group(3)
        try:
            image_bytes = decode_base64(payload)
        except InvalidArgumentError as e:
            logger.warning(f"Skipping embedded image {index}: {e.message}")
            return None

        try:
            return await self.vlm.ocr(to_data_uri(mime_type, image_bytes), self.build_prompt(alt_text))
        except Exception as e:
            logger.warning(f"Failed to OCR image {index}: {e}")
            return None


def replace_embedded_images_with_placeholders(markdown: str) -> str:
    """Swap each embedded image for an HTML comment that keeps its alt text."""

    def placeholder(match: re.Match) -> str:
        alt_text = match.group(1)
        return f"<!-- image: {alt_text} -->" if alt_text.strip() else "<!-- image -->"

    return EMBEDDED_IMAGE_PATTERN.sub(placeholder, markdown)
