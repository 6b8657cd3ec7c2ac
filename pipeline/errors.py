"""Failure kinds raised by pipeline runs.

A filtered-out item is never an error. Everything here aborts the run.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class DebugDirectoryError(PipelineError):
    """The debug output directory exists and is not empty (or is not a directory)."""


class ImageDecodeError(PipelineError):
    """The input could not be decoded into a raster image."""


class EngineInitError(PipelineError):
    """A shared engine (e.g. the OCR model) failed to initialize."""


class DebugWriteError(PipelineError):
    """A debug snapshot could not be written to disk."""


class StageError(PipelineError):
    """A pipeline step failed while processing its items.

    Attributes:
        step_name: Name of the step that failed.
    """

    def __init__(self, step_name: str, message: str):
        super().__init__(f"Step '{step_name}' failed: {message}")
        self.step_name = step_name
