"""
Custom Exceptions
Error taxonomy for the station video pipeline
"""
from typing import Optional


class StoryPipelineError(Exception):
    """Base error for the station video pipeline"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(StoryPipelineError):
    """Missing or invalid configuration"""
    pass


class AuthFailure(StoryPipelineError):
    """Newsroom login rejected"""
    pass


class NotEligible(StoryPipelineError):
    """Video does not enter the pipeline. A normal skip, not a fault."""
    pass


class UpstreamFailure(StoryPipelineError):
    """Non-success response from an external service"""

    def __init__(self, message: str, service: str = None, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, kwargs)
        self.service = service
        self.status_code = status_code


class UpstreamRateLimited(UpstreamFailure):
    """External service answered with a rate-limit status (HTTP 429)"""
    pass


class LLMError(UpstreamFailure):
    """Reasoning-service call failed"""

    def __init__(self, message: str, provider: str = None, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, service=provider, status_code=status_code, **kwargs)
        self.provider = provider


class LLMRateLimited(LLMError, UpstreamRateLimited):
    """Reasoning service rate-limited the request"""
    pass


class ParseFailure(StoryPipelineError):
    """Malformed analysis document, topic label, or production markup"""
    pass


class StorageError(StoryPipelineError):
    """Story record store error"""
    pass


class DuplicateCreation(StorageError):
    """A story for the same (station, video name) pair already exists; `create` recovers by returning it"""

    def __init__(self, message: str, existing_id: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.existing_id = existing_id


class DeliveryFailure(StoryPipelineError):
    """Feed document could not be built or transferred"""
    pass


class InvalidTransition(StoryPipelineError):
    """Pipeline state change not allowed by the transition table"""
    pass
