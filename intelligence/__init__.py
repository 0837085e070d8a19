"""
Intelligence Module
LLM abstraction + interest resolution
"""
from .llm import (
    AzureOpenAILLM,
    BaseLLM,
    LLMResponse,
    Message,
    OpenAILLM,
    get_llm,
)
from .interest_resolver import InterestResolver, parse_interested_stations

__all__ = [
    # LLM
    "BaseLLM",
    "LLMResponse",
    "Message",
    "OpenAILLM",
    "AzureOpenAILLM",
    "get_llm",
    # Resolver
    "InterestResolver",
    "parse_interested_stations",
]
