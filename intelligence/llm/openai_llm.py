"""
OpenAI LLM
OpenAI and Azure OpenAI chat completions
"""
from typing import Any, Dict, List, Optional
import logging
import inspect

import openai

from utils.exceptions import LLMError, LLMRateLimited

from .base import BaseLLM, Message, LLMResponse


logger = logging.getLogger(__name__)


class OpenAILLM(BaseLLM):
    """
    OpenAI chat-completions client

    SDK-level retries are disabled; rate limiting is surfaced as LLMRateLimited
    so callers own the retry policy.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(model, temperature, max_tokens, timeout, **kwargs)
        self.api_key = api_key
        self.base_url = base_url
        self._async_client = None

    @property
    def provider(self) -> str:
        return "openai"

    def _build_async_client(self):
        return openai.AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
        )

    def _get_async_client(self):
        if self._async_client is None:
            self._async_client = self._build_async_client()
        return self._async_client

    async def acomplete(
        self,
        messages: List[Message],
        *,
        response_format: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> LLMResponse:
        client = self._get_async_client()

        request_params = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }
        if response_format:
            request_params["response_format"] = response_format

        try:
            response = await client.chat.completions.create(**request_params)
        except openai.RateLimitError as exc:
            raise LLMRateLimited(str(exc), provider=self.provider, status_code=429) from exc
        except openai.APIStatusError as exc:
            raise LLMError(str(exc), provider=self.provider, status_code=exc.status_code) from exc
        except openai.APIError as exc:
            raise LLMError(str(exc), provider=self.provider) from exc

        choice = response.choices[0]
        usage = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage=usage,
            finish_reason=choice.finish_reason,
            raw_response=response,
        )

    async def aclose(self) -> None:
        client = self._async_client
        if client is None:
            return
        close_fn = getattr(client, "close", None)
        if callable(close_fn):
            maybe_awaitable = close_fn()
            if inspect.isawaitable(maybe_awaitable):
                await maybe_awaitable
        self._async_client = None


class AzureOpenAILLM(OpenAILLM):
    """Azure OpenAI deployment; `model` is the deployment name."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        azure_endpoint: Optional[str] = None,
        api_version: str = "2024-08-01-preview",
        **kwargs,
    ):
        super().__init__(model=model, api_key=api_key, **kwargs)
        self.azure_endpoint = azure_endpoint
        self.api_version = api_version

    @property
    def provider(self) -> str:
        return "azure"

    def _build_async_client(self):
        return openai.AsyncAzureOpenAI(
            api_key=self.api_key,
            azure_endpoint=self.azure_endpoint,
            api_version=self.api_version,
            timeout=self.timeout,
            max_retries=0,
        )
