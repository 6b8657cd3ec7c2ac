"""
Composable image-processing pipeline.

Key components:
- types: PipelineData records, BoundingBox, MetadataValue
- steps: PipelineStep interface, PipelineContext, LazyResource
- runner: Pipeline builder with the sequential runner
- executor: Concurrent executor that tracks each record's lineage
- debug: Per-step debug snapshots
- errors: Failure kinds

Steps never mutate their input records, and every record of a run shares
one read-only original image.
"""

from .types import BoundingBox, MetadataValue, PipelineData
from .errors import (
    PipelineError,
    DebugDirectoryError,
    DebugWriteError,
    EngineInitError,
    ImageDecodeError,
    StageError,
)
from .steps import LazyResource, PipelineContext, PipelineStep
from .debug import DebugWriter, lineage_filename, step_dir_name
from .executor import PipelineExecutor, WorkItem
from .runner import Pipeline

__all__ = [
    # Data model
    "BoundingBox",
    "MetadataValue",
    "PipelineData",
    # Errors
    "PipelineError",
    "DebugDirectoryError",
    "DebugWriteError",
    "EngineInitError",
    "ImageDecodeError",
    "StageError",
    # Steps and context
    "LazyResource",
    "PipelineContext",
    "PipelineStep",
    # Runners
    "Pipeline",
    "PipelineExecutor",
    "WorkItem",
    # Debug output
    "DebugWriter",
    "lineage_filename",
    "step_dir_name",
]
