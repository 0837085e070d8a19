"""
LLM Factory
Build an LLM client from settings
"""
from typing import Optional
import logging

from config.settings import LLMSettings, get_llm_settings
from utils.exceptions import ConfigurationError

from .base import BaseLLM
from .openai_llm import AzureOpenAILLM, OpenAILLM


logger = logging.getLogger(__name__)


DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "azure": "gpt-4o",
}


def get_llm(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    settings: Optional[LLMSettings] = None,
    **kwargs,
) -> BaseLLM:
    """
    Build an LLM client.

    Args:
        provider: openai or azure (defaults to LLM_PROVIDER)
        model: model / deployment name (defaults to LLM_MODEL_NAME)
        settings: explicit settings instead of the environment
        **kwargs: temperature, max_tokens, timeout overrides

    Example:
        llm = get_llm()
        llm = get_llm(provider="azure", model="gpt-4o")
    """
    settings = settings or get_llm_settings()
    provider = (provider or settings.provider or "openai").strip().lower()
    model = model or settings.model_name or DEFAULT_MODELS.get(provider)

    for key, value in {
        "temperature": settings.temperature,
        "max_tokens": settings.max_tokens,
        "timeout": settings.timeout,
    }.items():
        kwargs.setdefault(key, value)

    logger.info("llm_client provider=%s model=%s", provider, model)

    if provider == "openai":
        return OpenAILLM(
            model=model,
            api_key=kwargs.pop("api_key", None) or settings.openai_api_key,
            base_url=kwargs.pop("base_url", None) or settings.base_url,
            **kwargs,
        )
    if provider == "azure":
        if not settings.azure_endpoint:
            raise ConfigurationError("LLM_AZURE_ENDPOINT is not set")
        return AzureOpenAILLM(
            model=model,
            api_key=kwargs.pop("api_key", None) or settings.azure_api_key,
            azure_endpoint=settings.azure_endpoint,
            api_version=settings.azure_api_version,
            **kwargs,
        )
    raise ConfigurationError(f"Unsupported LLM provider: {provider}")
