"""
OpenAI-compatible inference adapter.

Structured calls ask for a JSON object, parse it and check it against the
caller's contract before returning, so a step never sees unvalidated output.
"""

import json
import logging
from typing import Optional, Type, TypeVar

from openai import AsyncOpenAI, OpenAIError

from agents.errors import InferenceError, OutputContractError
from agents.ports import InferencePort
from config.settings import settings
from models.validation import Invalid, validate

logger = logging.getLogger(__name__)

T = TypeVar("T")


def contract_name(contract) -> str:
    return getattr(contract, "__name__", None) or str(contract)


class OpenAIInference(InferencePort):

    def __init__(
        self,
        api_key: Optional[str] = settings.OPENAI_API_KEY,
        base_url: Optional[str] = settings.OPENAI_BASE_URL,
        model: str = settings.OPENAI_MODEL,
        max_tokens: int = settings.LLM_MAX_TOKENS,
        temperature: float = settings.LLM_TEMPERATURE,
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        if client is None and not api_key:
            raise InferenceError("OPENAI_API_KEY (or OPENROUTER_API_KEY) is not configured")
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def _complete(self, system_prompt: str, user_prompt: str, max_tokens: Optional[int], json_mode: bool) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
                max_tokens=max_tokens or self.max_tokens,
                **kwargs,
            )
        except OpenAIError as e:
            raise InferenceError(f"Inference call failed: {e}") from e

        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            raise InferenceError("Inference returned no content")
        return content

    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        contract: Type[T],
        max_tokens: Optional[int] = None,
    ) -> T:
        raw = await self._complete(system_prompt, user_prompt, max_tokens, json_mode=True)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.debug(f"Unparseable inference output: {raw[:500]}")
            raise InferenceError(f"Inference output is not valid JSON: {e}") from e

        outcome = validate(data, contract)
        if isinstance(outcome, Invalid):
            raise OutputContractError(contract_name(contract), outcome.errors)
        return outcome.value

    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        return await self._complete(system_prompt, user_prompt, max_tokens, json_mode=False)
