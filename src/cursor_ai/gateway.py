# gateway.py
# The model service as seen by the driver: full history in, one JSON step out.
#
# The driver depends only on the ModelGateway protocol. OpenRouterGateway is
# the production implementation; tests substitute a scripted fake.

import os
from typing import Protocol

from dotenv import load_dotenv
from loguru import logger
from openai import OpenAI

load_dotenv()

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class ModelGateway(Protocol):
    def generate(self, history: list[str]) -> str:
        """Return the raw text of exactly one step for this history."""
        ...


def render_history(history: list[str]) -> str:
    """History entries joined in order, the single text blob the model sees."""
    return "\n".join(history)


class OpenRouterGateway:
    """
    OpenAI-compatible chat client pointed at OpenRouter.

    Example:
        gateway = OpenRouterGateway(
            model="google/gemini-2.0-flash-001",
            system_prompt=build_system_prompt(registry),
        )
        raw = gateway.generate(['{"type": "user", "prompt": "list files"}'])
    """

    def __init__(
        self,
        model: str,
        system_prompt: str,
        temperature: float | None = None,
        api_key: str | None = None,
    ) -> None:
        self._model = model
        self._system_prompt = system_prompt
        self._temperature = temperature
        self._client = OpenAI(
            base_url=OPENROUTER_BASE_URL,
            api_key=api_key or os.getenv("OPENROUTER_API_KEY"),
        )
        logger.info("OpenRouterGateway → model='{}'", model)

    def generate(self, history: list[str]) -> str:
        kwargs = {}
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature
        response = self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": render_history(history)},
            ],
            response_format={"type": "json_object"},
            **kwargs,
        )
        content = (response.choices[0].message.content or "").strip()
        logger.debug("gateway: {} history entries → {} chars", len(history), len(content))
        return content
