"""OpenAI Responses API client for text and vision prompts."""

import base64
from collections.abc import Sequence
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from yogaageproof.domain.errors import AIResponseParseError, normalize_error
from yogaageproof.services.ai_client import AIClient, ChatMessage


@dataclass
class OpenAIMessageClient(AIClient):
    """AI client backed by OpenAI Responses API."""

    client: AsyncOpenAI
    model: str

    @classmethod
    def create(cls, api_key: str, model: str) -> "OpenAIMessageClient":
        """Create an OpenAI message client."""
        return cls(client=AsyncOpenAI(api_key=api_key), model=model)

    async def close(self) -> None:
        await self.client.close()

    async def create_message(  # noqa: PLR0913
        self,
        *,
        messages: Sequence[ChatMessage],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float | None = None,
        images: Sequence[bytes] = (),
    ) -> str:
        """Call OpenAI Responses API and return the output text."""
        request_payload: dict[str, object] = {
            "model": self.model,
            "input": _build_input(messages, images),
            "max_output_tokens": max_tokens,
        }
        if system:
            request_payload["instructions"] = system
        if temperature is not None:
            request_payload["temperature"] = temperature

        try:
            response = await self.client.responses.create(**request_payload)
        except openai.OpenAIError as exc:
            raise normalize_error(exc) from exc
        output_text = response.output_text
        if not output_text:
            raise AIResponseParseError("OpenAI returned an empty response")
        return output_text


def _build_input(
    messages: Sequence[ChatMessage], images: Sequence[bytes]
) -> list[dict[str, object]]:
    """Convert chat messages to Responses input, attaching images to the last one."""
    items: list[dict[str, object]] = []
    last_index = len(messages) - 1
    for index, message in enumerate(messages):
        role = message.get("role", "user")
        text = message.get("content", "")
        if index == last_index and images and role == "user":
            content: list[dict[str, str]] = [
                {"type": "input_image", "image_url": _to_data_url(image)}
                for image in images
            ]
            content.append({"type": "input_text", "text": text})
            items.append({"role": role, "content": content})
        else:
            items.append({"role": role, "content": text})
    return items


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
