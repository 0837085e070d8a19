"""
Utils Module
Logging and error taxonomy
"""
from .logger import setup_logger, get_logger, configure_pipeline_logging
from .exceptions import (
    StoryPipelineError,
    ConfigurationError,
    AuthFailure,
    NotEligible,
    UpstreamFailure,
    UpstreamRateLimited,
    LLMError,
    LLMRateLimited,
    ParseFailure,
    StorageError,
    DuplicateCreation,
    DeliveryFailure,
    InvalidTransition,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "configure_pipeline_logging",
    "StoryPipelineError",
    "ConfigurationError",
    "AuthFailure",
    "NotEligible",
    "UpstreamFailure",
    "UpstreamRateLimited",
    "LLMError",
    "LLMRateLimited",
    "ParseFailure",
    "StorageError",
    "DuplicateCreation",
    "DeliveryFailure",
    "InvalidTransition",
]
