"""
Vision model client.

Talks to OpenRouter through its OpenAI-compatible API, so a single client
covers every supported model. `identify` owns the attempt loop: a reply
that cannot be parsed into a valid item list is retried once, and a
second failure is fatal.
"""

import asyncio
import base64
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from shelfscan.identification.types import IdentifiedItem
from shelfscan.vision.parser import VisionResponseError, parse_vision_response
from shelfscan.vision.preprocessing import PreprocessConfig, prepare_image
from shelfscan.vision.prompts import SYSTEM_PROMPT, build_user_message


OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
APP_TITLE = "ShelfScan"

MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class ModelConfig:
    id: str
    name: str
    input_cost_per_m_tokens: float
    output_cost_per_m_tokens: float


SUPPORTED_MODELS = [
    ModelConfig("anthropic/claude-sonnet-4", "Claude Sonnet 4", 3.00, 15.00),
    ModelConfig("openai/gpt-4o", "GPT-4o", 2.50, 10.00),
    ModelConfig("google/gemini-2.0-flash-001", "Gemini 2.0 Flash", 0.10, 0.40),
]

DEFAULT_MODEL_ID = "openai/gpt-4o"


def get_model(model_id: str) -> Optional[ModelConfig]:
    return next((m for m in SUPPORTED_MODELS if m.id == model_id), None)


def calculate_cost(
    input_tokens: int,
    output_tokens: int,
    input_cost_per_m_tokens: float,
    output_cost_per_m_tokens: float,
) -> float:
    """USD cost of one call given per-million-token rates."""
    return (
        input_tokens * input_cost_per_m_tokens / 1_000_000
        + output_tokens * output_cost_per_m_tokens / 1_000_000
    )


@dataclass
class Completion:
    content: Optional[str]
    input_tokens: int
    output_tokens: int
    model: str


@dataclass
class VisionResult:
    """Parsed items plus what is needed for replay and the cost ledger."""

    items: list[IdentifiedItem]
    raw_content: str
    input_tokens: int
    output_tokens: int
    model: str
    cost_usd: float


class VisionClient:
    """
    Shelf-photo identification through OpenRouter.

    Usage:
        client = VisionClient(api_key="...")
        result = await client.identify(image_bytes, "openai/gpt-4o")
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = OPENROUTER_BASE_URL,
        referer: str = "http://localhost:8000",
        timeout: float = 120.0,
        max_tokens: int = 4096,
        temperature: float = 0.1,
        preprocess: Optional[PreprocessConfig] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.referer = referer
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.preprocess = preprocess or PreprocessConfig()
        self._client = None

    def _get_client(self):
        """Lazy initialization of the OpenAI-compatible client."""
        if self._client is None:
            import openai
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                default_headers={
                    "HTTP-Referer": self.referer,
                    "X-Title": APP_TITLE,
                },
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def complete(self, model_id: str, messages: list[dict]) -> Completion:
        """Single chat completion; transport errors propagate."""
        client = self._get_client()
        response = await client.chat.completions.create(
            model=model_id,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        content = response.choices[0].message.content if response.choices else None
        usage = response.usage
        logger.debug(
            f"Vision response from {response.model or model_id}: "
            f"{usage.prompt_tokens if usage else 0} in / "
            f"{usage.completion_tokens if usage else 0} out tokens"
        )
        return Completion(
            content=content,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=response.model or model_id,
        )

    async def identify(self, image: bytes, model_id: str) -> VisionResult:
        """
        Identify the items on a shelf photo.

        Raises:
            ValueError: Unknown model id or unusable image
            VisionResponseError: Both attempts produced invalid output
        """
        model = get_model(model_id)
        if model is None:
            raise ValueError(f"Invalid model ID: {model_id}")

        processed = await asyncio.to_thread(prepare_image, image, self.preprocess)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            build_user_message(base64.b64encode(processed).decode("ascii"), "image/jpeg"),
        ]

        last_error = "no attempt made"
        for attempt in range(1, MAX_ATTEMPTS + 1):
            logger.info(f"Calling vision model {model.id} (attempt {attempt})")
            completion = await self.complete(model.id, messages)

            try:
                items = parse_vision_response(completion.content)
            except VisionResponseError as e:
                last_error = str(e)
                logger.warning(f"Vision attempt {attempt} unusable: {last_error}")
                continue

            cost = calculate_cost(
                completion.input_tokens,
                completion.output_tokens,
                model.input_cost_per_m_tokens,
                model.output_cost_per_m_tokens,
            )
            logger.info(f"Vision model found {len(items)} items (${cost:.4f})")
            return VisionResult(
                items=items,
                raw_content=completion.content,
                input_tokens=completion.input_tokens,
                output_tokens=completion.output_tokens,
                model=completion.model,
                cost_usd=cost,
            )

        raise VisionResponseError(f"Failed to parse vision response: {last_error}")

    async def test_connection(self) -> tuple[bool, str]:
        try:
            models = await self._get_client().models.list()
        except Exception as e:
            return False, str(e)
        return True, f"Connected to OpenRouter ({len(models.data)} models available)"
