"""Interface for the external text and vision model."""

from collections.abc import Sequence
from typing import Protocol

ChatMessage = dict[str, str]


class AIClient(Protocol):
    """Interface for sending one prompt to the AI service."""

    model: str

    async def create_message(  # noqa: PLR0913
        self,
        *,
        messages: Sequence[ChatMessage],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float | None = None,
        images: Sequence[bytes] = (),
    ) -> str:
        """Return the text content of the model response."""
