"""Pydantic schemas (DTOs) for the parse API."""

from typing import List

from pydantic import BaseModel

from docgate.features.parse.domain.entities import ParseResult


class ParseResponse(BaseModel):
    """Markdown produced for an uploaded document."""
    filename: str
    markdown: str

    @classmethod
    def from_result(cls, result: ParseResult) -> "ParseResponse":
        return cls(filename=result.filename, markdown=result.markdown)


class BackendStatus(BaseModel):
    base_url: str
    status: str


class ParserHealthResponse(BaseModel):
    """Active profile and the state of every configured back-end."""
    status: str = "ok"
    profile: str
    structured: List[BackendStatus] = []
    vlm: List[BackendStatus] = []
