"""
Composable pipeline builder and sequential runner.

A Pipeline is an ordered list of steps plus run-wide settings. Building it
never executes anything. Three ways to run it:

1. run() - sequential: each step processes the whole working set before
   the next step starts. Debug snapshots use flat numbering.
2. run_partial() - sequential, stopping after the first k steps.
3. run_with_executor() / run_with_lineage() - concurrent lineage executor.
   Debug snapshots are named after each item's lineage path.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterator

import numpy as np

from .debug import DebugWriter, prepare_debug_dir
from .errors import PipelineError, StageError
from .executor import PipelineExecutor, WorkItem
from .steps import LazyResource, PipelineContext, PipelineStep
from .types import PipelineData

logger = logging.getLogger(__name__)


def _validate_input(img: np.ndarray) -> None:
    """Validate input image array.

    Raises:
        TypeError: If img is not a numpy array.
        ValueError: If img has invalid dimensions or is empty.
    """
    if not isinstance(img, np.ndarray):
        raise TypeError(f"Expected numpy.ndarray, got {type(img).__name__}")

    if img.ndim < 2 or img.ndim > 3:
        raise ValueError(
            f"Image must be 2D or 3D array, got {img.ndim}D array with shape {img.shape}"
        )

    if img.size == 0:
        raise ValueError("Image array is empty")


def _run_step(
    step: PipelineStep,
    data: list[PipelineData],
    context: PipelineContext,
) -> list[PipelineData]:
    try:
        return step.process(data, context)
    except PipelineError:
        raise
    except Exception as e:
        raise StageError(step.name, str(e) or type(e).__name__) from e


class Pipeline:
    """An ordered sequence of steps plus run-wide configuration.

    Example:
        pipeline = (
            Pipeline()
            .with_verbose(True)
            .add_step(GrayscaleStep())
            .add_step(BlurStep(sigma=1.5))
        )
        records = pipeline.run(image)

    Attributes:
        steps: Steps applied in order.
        verbose: Log per-step progress at INFO level.
        debug_dir: Directory for debug snapshots (None = disabled).
        ocr_engine_factory: Builds the recognition engine, called at most
                            once per run and only if a step asks for it.
    """

    def __init__(
        self,
        steps: list[PipelineStep] | None = None,
        verbose: bool = False,
        debug_dir: str | Path | None = None,
        ocr_engine_factory: Callable[[], Any] | None = None,
    ):
        self.steps: list[PipelineStep] = list(steps or [])
        self.verbose = verbose
        self.debug_dir: Path | None = None
        self.ocr_engine_factory = ocr_engine_factory
        if debug_dir is not None:
            self.with_debug(debug_dir)

    def add_step(self, step: PipelineStep) -> Pipeline:
        """Append a step. Returns the pipeline for chaining."""
        if not isinstance(step, PipelineStep):
            raise TypeError(f"Expected PipelineStep, got {type(step).__name__}")
        self.steps.append(step)
        return self

    def with_verbose(self, verbose: bool) -> Pipeline:
        self.verbose = verbose
        return self

    def with_debug(self, output_dir: str | Path) -> Pipeline:
        """Enable debug snapshots below ``output_dir``.

        The directory must be empty or non-existent (it is created).

        Raises:
            DebugDirectoryError: If the directory exists and is not empty.
        """
        self.debug_dir = prepare_debug_dir(output_dir)
        return self

    def with_ocr_engine(self, factory: Callable[[], Any]) -> Pipeline:
        """Set the factory for the shared recognition engine."""
        self.ocr_engine_factory = factory
        return self

    def new_context(self) -> PipelineContext:
        """Create the context for one run, with fresh run-scoped resources."""
        return PipelineContext(
            verbose=self.verbose,
            debug_dir=self.debug_dir,
            ocr_engine=LazyResource(self.ocr_engine_factory, name="OCR engine"),
        )

    def _debug_writer(self) -> DebugWriter | None:
        if self.debug_dir is None:
            return None
        # Re-checked per run so a second run never mixes into old output
        return DebugWriter.create(self.debug_dir)

    def _log(self, msg: str, *args: Any) -> None:
        if self.verbose:
            logger.info(msg, *args)
        else:
            logger.debug(msg, *args)

    def run(self, image: np.ndarray) -> list[PipelineData]:
        """Run all steps sequentially on an image.

        Args:
            image: Input image (grayscale or RGB numpy array).

        Returns:
            Records produced by the last step.

        Raises:
            TypeError, ValueError: If the input is not a valid image array.
            PipelineError: On debug directory, stage or engine failures.
        """
        _validate_input(image)
        writer = self._debug_writer()
        context = self.new_context()

        try:
            if writer is not None:
                writer.write_input(image)

            data = [PipelineData.from_image(image)]
            for index, step in enumerate(self.steps, start=1):
                self._log("Running step: %s (processing %d items)", step.name, len(data))
                data = _run_step(step, data, context)
                if writer is not None:
                    writer.write_stage(index, step.name, data)
                self._log("  -> %d items", len(data))
            return data
        finally:
            context.close()

    def run_partial(self, image: np.ndarray, num_steps: int) -> list[PipelineData]:
        """Run only the first ``num_steps`` steps and return their output.

        No debug snapshots are written.
        """
        if num_steps < 0:
            raise ValueError(f"num_steps must be non-negative, got {num_steps}")
        _validate_input(image)
        context = self.new_context()

        try:
            data = [PipelineData.from_image(image)]
            for index, step in enumerate(self.steps[:num_steps], start=1):
                self._log(
                    "Running step %d: %s (processing %d items)", index, step.name, len(data)
                )
                data = _run_step(step, data, context)
                self._log("  -> %d items", len(data))
            return data
        finally:
            context.close()

    def run_with_lineage(
        self,
        image: np.ndarray,
        workers_per_stage: int = 1,
    ) -> list[WorkItem]:
        """Run through the concurrent executor, keeping lineage paths.

        Returns:
            Final work items sorted by lineage.
        """
        _validate_input(image)
        writer = self._debug_writer()
        context = self.new_context()

        try:
            if writer is not None:
                writer.write_input(image)
            executor = PipelineExecutor(
                self.steps,
                context,
                workers_per_stage=workers_per_stage,
                debug_writer=writer,
            )
            self._log("Running %d steps with executor", len(self.steps))
            items = executor.execute([WorkItem.root(PipelineData.from_image(image))])
            self._log("  -> %d items", len(items))
            return items
        finally:
            context.close()

    def run_with_executor(
        self,
        image: np.ndarray,
        workers_per_stage: int = 1,
    ) -> list[PipelineData]:
        """Run through the concurrent executor and return the final records."""
        return [item.data for item in self.run_with_lineage(image, workers_per_stage)]

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[PipelineStep]:
        return iter(self.steps)
