"""
Client for OpenAI-compatible vision-language model servers.
Each request carries one image as a data URI and one text prompt.
"""
import asyncio
from dataclasses import dataclass
from typing import List, Literal, Optional, Union

import httpx
from pydantic import BaseModel, ValidationError

from docgate.features.parse.domain.service_interface import VisionOCR
from docgate.shared.endpoint_pool import EndpointPool
from docgate.shared.exceptions import InvalidArgumentError, VLMError
from docgate.shared.file_types import validate_data_uri
from docgate.shared.helpers import read_limited
from docgate.core.config import DEFAULT_VLM_PROMPT, Settings, VLMServer, settings
from docgate.core.logger import get_logger

logger = get_logger(__name__)

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"


# --- Chat completion DTOs ---
class ImageUrl(BaseModel):
    url: str


class ImageContent(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ChatMessage(BaseModel):
    role: str = "user"
    content: List[Union[ImageContent, TextContent]]


class ChatRequest(BaseModel):
    model: str
    messages: List[ChatMessage]
    max_tokens: int
    temperature: float


class ResponseMessage(BaseModel):
    role: Optional[str] = None
    content: Optional[str] = None


class Choice(BaseModel):
    index: int = 0
    message: Optional[ResponseMessage] = None
    finish_reason: Optional[str] = None


class ChatResponse(BaseModel):
    id: Optional[str] = None
    model: Optional[str] = None
    choices: List[Choice] = []

    def get_content(self) -> Optional[str]:
        if not self.choices or self.choices[0].message is None:
            return None
        return self.choices[0].message.content


@dataclass(frozen=True)
class VLMEndpoint:
    base_url: str
    model: str
    api_key: Optional[str] = None


class VLMChatService(VisionOCR):
    """
    OCR through a pool of chat/completions servers.
    Every server entry carries its own model name; requests rotate round-robin.
    """

    def __init__(
        self,
        servers: List[VLMServer],
        timeout: float = 120.0,
        max_buffer_size: int = 16 * 1024 * 1024,
        max_tokens: int = 4096,
        temperature: float = 0.01,
        default_prompt: str = DEFAULT_VLM_PROMPT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.pool = EndpointPool([
            VLMEndpoint(base_url=server.base_url.rstrip('/'), model=server.model, api_key=server.api_key)
            for server in servers
        ])
        self.timeout = timeout
        self.max_buffer_size = max_buffer_size
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.default_prompt = default_prompt

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            limits=httpx.Limits(
                max_keepalive_connections=20,
                max_connections=100,
                keepalive_expiry=30.0
            )
        )

        logger.info(f"VLMChatService initialized with {len(self.pool)} servers")
        for endpoint in self.pool:
            logger.info(f"  - {endpoint.base_url} (model: {endpoint.model})")

    async def ocr(self, data_uri: str, prompt: Optional[str] = None) -> str:
        """
        Ask the next VLM server to read an image.

        Args:
            data_uri: Image as ``data:<mime>;base64,<payload>``
            prompt: Instruction sent with the image; defaults to the configured OCR prompt

        Returns:
            The model's text; an empty string when the model answered with nothing

        Raises:
            InvalidArgumentError: If the data URI is malformed (checked before any request)
            VLMError: On network failure, timeout or a response without content
        """
        if not validate_data_uri(data_uri):
            raise InvalidArgumentError("Invalid base64 encoded data URI")

        endpoint = self.pool.next()
        request = ChatRequest(
            model=endpoint.model,
            messages=[
                ChatMessage(content=[
                    ImageContent(image_url=ImageUrl(url=data_uri)),
                    TextContent(text=prompt or self.default_prompt),
                ])
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        logger.debug(f"Sending OCR request to {endpoint.base_url} (model: {endpoint.model})")

        try:
            body = await asyncio.wait_for(self._post(endpoint, request), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"VLM request to {endpoint.base_url} timed out after {self.timeout}s")
            raise VLMError(f"VLM request timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"VLM server at {endpoint.base_url} returned {e.response.status_code}")
            raise VLMError(f"Failed to OCR image: VLM returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"VLM request failed: {e}")
            raise VLMError(f"Failed to OCR image: {e}") from e
        except ValueError as e:
            raise VLMError(f"Failed to OCR image: {e}") from e

        if not body or not body.strip():
            raise VLMError("Empty response from VLM service")
        try:
            response = ChatResponse.model_validate_json(body)
        except ValidationError as e:
            raise VLMError(f"Invalid response format from VLM service: {e.error_count()} errors") from e

        content = response.get_content()
        if content is None:
            raise VLMError("Invalid response format: missing content")
        return content

    async def _post(self, endpoint: VLMEndpoint, request: ChatRequest) -> bytes:
        headers = {"Authorization": f"Bearer {endpoint.api_key}"} if endpoint.api_key else None
        async with self._client.stream(
            "POST",
            f"{endpoint.base_url}{CHAT_COMPLETIONS_PATH}",
            json=request.model_dump(),
            headers=headers,
        ) as response:
            response.raise_for_status()
            return await read_limited(response, self.max_buffer_size)

    def describe(self) -> List[dict]:
        """Configured servers, for health reporting."""
        return [{"base_url": endpoint.base_url, "status": f"configured (model: {endpoint.model})"} for endpoint in self.pool]

    async def close(self):
        """Close the HTTP client connection pool."""
        await self._client.aclose()


def get_vlm_chat_service(app_settings: Optional[Settings] = None) -> VLMChatService:
    """Factory function to create VLMChatService."""
    config = (app_settings or settings).parser.vlm
    if not config.configured:
        raise ValueError("parser.vlm.servers not configured in settings")
    return VLMChatService(
        servers=config.servers,
        timeout=config.timeout.total_seconds(),
        max_buffer_size=config.max_buffer_size,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        default_prompt=config.default_prompt,
    )
