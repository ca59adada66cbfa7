"""Chat-completions adapter - HTTP client for the AI text gateway."""

import logging

import requests

from churros.config import Config, load_config

logger = logging.getLogger(__name__)


class ChatCompletionService:
    """
    OpenAI-compatible chat completions client.

    Implements LLMService protocol. One user message in, one reply out.
    """

    def __init__(self, config: Config | None = None):
        self.config = config or load_config()
        self.config.require_ai()
        self.timeout = self.config.ai_timeout
        self._session = requests.Session()

    def generate(self, prompt: str) -> str:
        """Generate text from a prompt. Returns complete response."""
        try:
            resp = self._session.post(
                f"{self.config.ai_gateway_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.config.ai_api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.config.ai_model,
                    "messages": [{"role": "user", "content": prompt}],
                },
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise RuntimeError(f"AI gateway timed out after {self.timeout}s")
        except requests.RequestException as e:
            raise RuntimeError(f"AI gateway request failed: {e}")

        if resp.status_code == 429:
            raise RuntimeError("AI gateway rate limit exceeded, try again later")
        if resp.status_code == 402:
            raise RuntimeError("AI gateway credits exhausted")
        if not resp.ok:
            logger.error(f"AI gateway error {resp.status_code}: {resp.text}")
            raise RuntimeError(f"AI gateway failed with status {resp.status_code}")

        choices = resp.json().get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            raise RuntimeError("AI gateway returned an empty response")
        return content
