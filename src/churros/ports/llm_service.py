"""Text generator interface - writes cashback messages and insight reports."""

from typing import Protocol


class LLMService(Protocol):
    """Single-shot text generation."""

    def generate(self, prompt: str) -> str:
        """Return the model's full reply to `prompt`. Raises RuntimeError on failure."""
        ...
