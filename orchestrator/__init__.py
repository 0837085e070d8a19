"""Pipeline orchestrator primitives."""

from .run_log import InMemoryRunLog, PipelineRun, RunEvent
from .service import VideoPipeline
from .states import TRANSITIONS, can_transition, check_transition, is_terminal

__all__ = [
    "InMemoryRunLog",
    "PipelineRun",
    "RunEvent",
    "VideoPipeline",
    "TRANSITIONS",
    "can_transition",
    "check_transition",
    "is_terminal",
]
