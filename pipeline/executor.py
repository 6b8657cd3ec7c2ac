"""
Concurrent pipeline executor with lineage tracking.

Each step gets its own worker thread(s). Stages are connected by queues in
pipeline order, so stage N can work on one item while stage N+1 works on
an earlier one. Every item carries its lineage path: the 1-based position
it had among the outputs of its parent at each step. Workers append to the
path of the item they consume, so no shared counter is needed.

Usage:
    executor = PipelineExecutor(steps, context)
    items = executor.execute([WorkItem.root(PipelineData.from_image(img))])
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field

import config
from .debug import DebugWriter, lineage_filename
from .errors import PipelineError, StageError
from .steps import PipelineContext, PipelineStep
from .types import PipelineData

logger = logging.getLogger(__name__)

# End-of-stream marker passed between stage queues
_DONE = object()


@dataclass(frozen=True)
class WorkItem:
    """A record together with its provenance.

    Attributes:
        data: The record.
        lineage: 1-based output position at every step executed so far.
                 E.g. (1, 3, 2): item 1 of step 1 -> its 3rd output in
                 step 2 -> that item's 2nd output in step 3.
    """

    data: PipelineData
    lineage: tuple[int, ...] = ()

    @classmethod
    def root(cls, data: PipelineData) -> WorkItem:
        return cls(data=data)

    @property
    def stage_index(self) -> int:
        """Number of steps this item has passed through."""
        return len(self.lineage)

    def child(self, data: PipelineData, position: int) -> WorkItem:
        """Derive the work item for the ``position``-th output of this one."""
        return WorkItem(data=data, lineage=self.lineage + (position,))

    @property
    def lineage_label(self) -> str:
        """Human readable lineage, e.g. ``01-03-02`` (``input`` for the root)."""
        if not self.lineage:
            return "input"
        return config.LINEAGE_SEPARATOR.join(f"{idx:02d}" for idx in self.lineage)

    def lineage_filename(self, extension: str = config.DEBUG_IMAGE_EXTENSION) -> str:
        """Debug filename for this item, e.g. ``01-03-02.png``."""
        return lineage_filename(self.lineage, extension)


@dataclass
class _Stage:
    """Bookkeeping for one step's worker threads."""

    index: int
    step: PipelineStep
    inbox: queue.Queue
    outbox: queue.Queue
    workers: int
    downstream_workers: int
    _active: int = field(init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def __post_init__(self) -> None:
        self._active = self.workers

    def worker_finished(self) -> bool:
        """Record a worker exit; True for the last worker of the stage."""
        with self._lock:
            self._active -= 1
            return self._active == 0


class PipelineExecutor:
    """Runs pipeline steps as a chain of queue-connected workers.

    Ordering is only guaranteed per lineage: items from different parents
    may finish in any order. ``execute`` returns items sorted by lineage.

    Attributes:
        steps: Steps to run in order.
        context: Run-wide settings and shared resources.
        workers_per_stage: Worker threads consuming each stage's queue.
        debug_writer: Optional writer receiving every produced item.
    """

    def __init__(
        self,
        steps: list[PipelineStep],
        context: PipelineContext,
        workers_per_stage: int = 1,
        debug_writer: DebugWriter | None = None,
    ):
        if workers_per_stage < 1:
            raise ValueError(f"workers_per_stage must be at least 1, got {workers_per_stage}")
        self.steps = list(steps)
        self.context = context
        self.workers_per_stage = workers_per_stage
        self.debug_writer = debug_writer
        self._abort = threading.Event()
        self._errors: list[Exception] = []
        self._errors_lock = threading.Lock()

    def execute(self, initial_items: list[WorkItem]) -> list[WorkItem]:
        """Push ``initial_items`` through every step and collect the results.

        Raises:
            PipelineError: The first failure of any worker. Debug images
                written before the failure stay on disk.
        """
        self._abort.clear()
        self._errors.clear()

        if not self.steps:
            return sorted(initial_items, key=lambda item: item.lineage)

        queues: list[queue.Queue] = [queue.Queue() for _ in range(len(self.steps) + 1)]
        stages = []
        for offset, step in enumerate(self.steps):
            is_last = offset == len(self.steps) - 1
            stages.append(
                _Stage(
                    index=offset + 1,
                    step=step,
                    inbox=queues[offset],
                    outbox=queues[offset + 1],
                    workers=self.workers_per_stage,
                    downstream_workers=1 if is_last else self.workers_per_stage,
                )
            )

        threads = []
        for stage in stages:
            for n in range(stage.workers):
                thread = threading.Thread(
                    target=self._run_worker,
                    args=(stage,),
                    name=f"stage-{stage.index:02d}-{n + 1}",
                    daemon=True,
                )
                thread.start()
                threads.append(thread)

        first_inbox = queues[0]
        for item in initial_items:
            first_inbox.put(item)
        for _ in range(self.workers_per_stage):
            first_inbox.put(_DONE)

        completed = []
        final_queue = queues[-1]
        while True:
            item = final_queue.get()
            if item is _DONE:
                break
            completed.append(item)

        for thread in threads:
            thread.join()

        if self._errors:
            raise self._errors[0]

        return sorted(completed, key=lambda item: item.lineage)

    def _run_worker(self, stage: _Stage) -> None:
        try:
            while True:
                item = stage.inbox.get()
                if item is _DONE:
                    break
                if self._abort.is_set():
                    continue
                try:
                    for child in self._process_item(stage, item):
                        stage.outbox.put(child)
                except Exception as e:
                    self._fail(stage, e)
        finally:
            if stage.worker_finished():
                for _ in range(stage.downstream_workers):
                    stage.outbox.put(_DONE)

    def _process_item(self, stage: _Stage, item: WorkItem) -> list[WorkItem]:
        step = stage.step
        results = step.process([item.data], self.context)
        children = [
            item.child(data, position)
            for position, data in enumerate(results, start=1)
        ]
        if self.debug_writer is not None:
            for child in children:
                self.debug_writer.write_item(stage.index, step.name, child)

        log = logger.info if self.context.verbose else logger.debug
        log(
            "%s: %s -> %d items",
            step.name,
            item.lineage_label,
            len(children),
        )
        return children

    def _fail(self, stage: _Stage, error: Exception) -> None:
        if not isinstance(error, PipelineError):
            wrapped = StageError(stage.step.name, str(error) or type(error).__name__)
            wrapped.__cause__ = error
            error = wrapped
        with self._errors_lock:
            self._errors.append(error)
        self._abort.set()
        logger.error("Aborting run: %s", error)
