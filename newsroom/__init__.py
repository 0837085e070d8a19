"""Newsroom system access and the eligibility gate."""

from .client import EnpsClient, split_title
from .eligibility import EligibilityGate, EligibilityResult, age_in_minutes, decide_eligibility

__all__ = [
    "EnpsClient",
    "EligibilityGate",
    "EligibilityResult",
    "age_in_minutes",
    "decide_eligibility",
    "split_title",
]
