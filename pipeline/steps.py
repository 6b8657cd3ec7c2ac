"""
Pipeline step interface and the run-scoped context handed to every step.

Each step implements PipelineStep. A step receives the current list of
records and returns a new list, which lets one contract cover three shapes:

- transform: one output per input (grayscale, blur, ...)
- split: one input yields many outputs (contour detection)
- filter: output is an order-preserving subset of the input (circle filter)

Steps may be called concurrently from several worker threads, so they hold
only immutable configuration. Expensive shared objects (the OCR model) live
on the PipelineContext and are created lazily, once per run.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Generic, TypeVar

from .errors import EngineInitError
from .types import PipelineData

T = TypeVar("T")


class LazyResource(Generic[T]):
    """A value built on first use, exactly once, under a lock.

    Scoped to the object that owns it (one per pipeline run), never a
    process-wide singleton.
    """

    def __init__(self, factory: Callable[[], T] | None, name: str = "resource"):
        self._factory = factory
        self._name = name
        self._lock = threading.Lock()
        self._value: T | None = None

    @property
    def available(self) -> bool:
        """Whether a factory was configured at all."""
        return self._factory is not None

    @property
    def initialized(self) -> bool:
        return self._value is not None

    def get(self) -> T:
        """Return the shared value, creating it on first call.

        Raises:
            EngineInitError: If no factory is configured or the factory fails.
        """
        value = self._value
        if value is not None:
            return value
        with self._lock:
            if self._value is None:
                if self._factory is None:
                    raise EngineInitError(f"No factory configured for {self._name}")
                try:
                    self._value = self._factory()
                except EngineInitError:
                    raise
                except Exception as e:
                    raise EngineInitError(f"Failed to initialize {self._name}: {e}") from e
            return self._value

    def close(self) -> None:
        """Drop the value so it can be garbage collected."""
        with self._lock:
            self._value = None


@dataclass
class PipelineContext:
    """Run-wide settings and shared resources available to all steps.

    Attributes:
        verbose: Emit per-step progress at INFO instead of DEBUG level.
        debug_dir: Directory receiving debug snapshots (None = disabled).
        ocr_engine: Lazily created recognition engine shared by all workers.
    """

    verbose: bool = False
    debug_dir: Path | None = None
    ocr_engine: LazyResource[Any] = field(
        default_factory=lambda: LazyResource(None, name="OCR engine")
    )

    @property
    def debug_enabled(self) -> bool:
        return self.debug_dir is not None

    def close(self) -> None:
        """Tear down run-scoped resources."""
        self.ocr_engine.close()


class PipelineStep(ABC):
    """Base class for pipeline steps.

    All steps must implement this interface. Steps must never mutate the
    records they receive; they return new records instead.
    """

    @abstractmethod
    def process(
        self,
        data: list[PipelineData],
        context: PipelineContext,
    ) -> list[PipelineData]:
        """Process a list of records and return the resulting list.

        Args:
            data: Records produced by the previous step.
            context: Run-wide settings and shared resources.

        Returns:
            New list of records. May be longer (split), shorter (filter)
            or the same length (transform) as ``data``.

        Raises:
            Exception: Any failure aborts the whole run.
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for logging and debug directory naming."""
        pass
