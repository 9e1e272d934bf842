"""GitHub flavored Markdown to standalone HTML."""

import html
from typing import Optional

import markdown

from docgate.shared.exceptions import InvalidArgumentError
from docgate.core.logger import get_logger

logger = get_logger(__name__)

# Import filter LibreOffice needs to open the rendered HTML as a text document
HTML_IMPORT_FILTER = "HTML (StarWriter)"

GFM_EXTENSIONS = [
    "tables",
    "fenced_code",
    "pymdownx.tilde",
    "pymdownx.tasklist",
    "pymdownx.magiclink",
]

GFM_EXTENSION_CONFIGS = {
    # GFM has ~~strike~~ only, no ~subscript~
    "pymdownx.tilde": {"subscript": False},
    "pymdownx.tasklist": {"custom_checkbox": False},
}

STYLESHEET = """
    body { font-family: sans-serif; line-height: 1.6; max-width: 800px; margin: 0 auto; padding: 20px; }
    table { border-collapse: collapse; width: 100%; }
    th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
    th { background-color: #f2f2f2; }
    code { background-color: #f4f4f4; padding: 2px 4px; border-radius: 3px; }
    pre { background-color: #f4f4f4; padding: 10px; border-radius: 5px; overflow-x: auto; }
    blockquote { border-left: 4px solid #ddd; margin: 0; padding-left: 16px; color: #666; }
"""

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
{title}  <style>{stylesheet}  </style>
</head>
<body>
{body}
</body>
</html>
"""


def render_markdown(markdown_bytes: bytes) -> str:
    """Render a Markdown document body to an HTML fragment."""
    if not markdown_bytes:
        raise InvalidArgumentError("markdown content must not be empty")
    text = markdown_bytes.decode("utf-8", errors="replace")
    logger.debug(f"Converting markdown to HTML ({len(text)} chars)")
    return markdown.markdown(
        text,
        extensions=GFM_EXTENSIONS,
        extension_configs=GFM_EXTENSION_CONFIGS,
        output_format="html",
    )


def render_full_html(markdown_bytes: bytes, title: Optional[str] = None) -> bytes:
    """Render Markdown into a complete HTML5 document with the house stylesheet.

    Args:
        markdown_bytes: UTF-8 Markdown source
        title: Optional document title; escaped, and omitted entirely when blank

    Returns:
        UTF-8 encoded HTML document

    Raises:
        InvalidArgumentError: If the Markdown source is empty
    """
    body = render_markdown(markdown_bytes)
    title_element = f"  <title>{html.escape(title)}</title>\n" if title and title.strip() else ""
    document = HTML_TEMPLATE.format(title=title_element, stylesheet=STYLESHEET, body=body)
    return document.encode("utf-8")
