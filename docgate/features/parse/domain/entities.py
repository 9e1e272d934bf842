"""Domain entities for the parse feature."""

from dataclasses import dataclass
from enum import Enum


PAGE_SEPARATOR = "\n\n---\n\n"


class ParserProfile(str, Enum):
    """Pipeline family chosen once at startup from the configured back-ends."""

    HYBRID = "HYBRID"
    STRUCTURED_ONLY = "STRUCTURED_ONLY"
    VLM_ONLY = "VLM_ONLY"
    FALLBACK_TEXT = "FALLBACK_TEXT"


class ImageExportMode(str, Enum):
    """How the structured parser represents images in its Markdown output."""

    PLACEHOLDER = "placeholder"
    EMBEDDED = "embedded"
    REFERENCED = "referenced"


@dataclass(frozen=True)
class ParseResult:
    """Markdown produced for one uploaded document."""

    filename: str
    markdown: str


def select_profile(structured_configured: bool, vlm_configured: bool) -> ParserProfile:
    if structured_configured and vlm_configured:
        return ParserProfile.HYBRID
    if structured_configured:
        return ParserProfile.STRUCTURED_ONLY
    if vlm_configured:
        return ParserProfile.VLM_ONLY
    return ParserProfile.FALLBACK_TEXT
