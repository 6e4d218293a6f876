"""
Service modules for the clip pipeline.
"""

from ..exceptions import PipelineError, EngineFailure
from .stream_resolver import StreamResolver, ResolutionError
from .clip_executor import ClipExecutor
from .concatenator import Concatenator
from .task_registry import TaskRegistry, TaskRecord, Subscription, RegistryViolation
from .pipeline import ClipPipeline, OutputNamer, VerificationError

__all__ = [
    "PipelineError",
    "EngineFailure",
    "StreamResolver",
    "ResolutionError",
    "ClipExecutor",
    "Concatenator",
    "TaskRegistry",
    "TaskRecord",
    "Subscription",
    "RegistryViolation",
    "ClipPipeline",
    "OutputNamer",
    "VerificationError",
]
