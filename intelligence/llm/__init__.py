"""
LLM Module
Chat-completion abstraction for the reasoning service
"""
from .base import BaseLLM, LLMResponse, Message, MessageRole
from .openai_llm import AzureOpenAILLM, OpenAILLM
from .factory import get_llm

__all__ = [
    "BaseLLM",
    "LLMResponse",
    "Message",
    "MessageRole",
    "OpenAILLM",
    "AzureOpenAILLM",
    "get_llm",
]
