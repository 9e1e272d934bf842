import asyncio

import pytest

from docgate.core.backend_manager import BackendManager
from docgate.core.config import Settings
from docgate.features.parse.domain.entities import ParserProfile

DOCLING = {"base_urls": ["http://docling:5001"]}
VLM = {"servers": [{"base_url": "http://vlm:8000", "model": "qwen2.5-vl"}]}


@pytest.mark.parametrize(
    "parser, profile",
    [
        ({"docling": DOCLING, "vlm": VLM}, ParserProfile.HYBRID),
        ({"docling": DOCLING}, ParserProfile.STRUCTURED_ONLY),
        ({"vlm": VLM}, ParserProfile.VLM_ONLY),
        ({}, ParserProfile.FALLBACK_TEXT),
    ],
)
def test_profile_follows_configured_backends(parser, profile):
    manager = BackendManager()

    manager.load_backends(Settings(_env_file=None, parser=parser))

    assert manager.loaded
    assert manager.profile is profile
    assert manager.office_converter is not None
    assert manager.rasterizer is not None
    assert (manager.docling is not None) == ("docling" in parser)
    assert (manager.vlm is not None) == ("vlm" in parser)
    assert (manager.text_extractor is not None) == (profile is ParserProfile.FALLBACK_TEXT)


def test_close_releases_remote_clients():
    manager = BackendManager()
    manager.load_backends(Settings(_env_file=None, parser={"docling": DOCLING, "vlm": VLM}))

    asyncio.run(manager.close())

    assert manager.docling is None
    assert manager.vlm is None
    assert not manager.loaded
