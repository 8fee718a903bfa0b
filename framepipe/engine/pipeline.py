"""
Transform engine: the pipeline orchestrator.

Coordinates the flow of a job run:

    open -> pre-process tasks -> frame loop -> post-process tasks -> shutdown

and, for every frame read:

    filter -> validate -> transform -> map -> write
"""

import threading
from typing import Any

from framepipe.components.base import (
    Component,
    FrameFilter,
    FrameMapper,
    FrameReader,
    FrameTransform,
    FrameValidator,
    FrameWriter,
    TransformTask,
)
from framepipe.context.listener import ContextListener
from framepipe.context.transaction_context import TransactionContext
from framepipe.context.transform_context import TransformContext
from framepipe.core.exceptions import ConfigError, JobError, ReadError
from framepipe.core.models import RunResult, RunStatus
from framepipe.observability.logger import get_logger, log_operation

logger = get_logger(__name__)


class TransformEngine:
    """
    Runs one job: a reader, ordered filters, validators, transformers, an
    optional mapper and ordered writers, framed by pre- and post-process
    tasks.

    Components execute in the order they were added. The engine never
    inspects concrete component types; it only drives the shared
    lifecycle. ``shutdown()`` is guaranteed to run once per engine, on
    every exit path of ``run()``.
    """

    def __init__(self, name: str = "job", context: TransformContext | None = None):
        self.name = context.name if context is not None else name
        self._context = context

        self.reader: FrameReader | None = None
        self.mapper: FrameMapper | None = None
        self.filters: list[FrameFilter] = []
        self.validators: list[FrameValidator] = []
        self.transformers: list[FrameTransform] = []
        self.writers: list[FrameWriter] = []
        self.preprocess_tasks: list[TransformTask] = []
        self.postprocess_tasks: list[TransformTask] = []
        self.listeners: list[ContextListener] = []

        self.state = RunStatus.CONFIGURED
        self.result: RunResult | None = None

        # Everything successfully opened, context first, in open order
        self._opened: list[Any] = []
        self._shutdown_lock = threading.Lock()
        self._shutdown_done = False

    # -- configuration ---------------------------------------------------

    @property
    def context(self) -> TransformContext:
        if self._context is None:
            self._context = TransformContext(self.name)
        return self._context

    def set_context(self, context: TransformContext) -> None:
        self._context = context
        self.name = context.name

    def set_reader(self, reader: FrameReader) -> None:
        self.reader = reader

    def set_mapper(self, mapper: FrameMapper) -> None:
        self.mapper = mapper

    def add_listener(self, listener: ContextListener) -> None:
        self.listeners.append(listener)

    def add_filter(self, frame_filter: FrameFilter) -> int:
        """Add a filter; returns its position, which is its execution order."""
        self.filters.append(frame_filter)
        return len(self.filters) - 1

    def add_validator(self, validator: FrameValidator) -> int:
        self.validators.append(validator)
        return len(self.validators) - 1

    def add_transformer(self, transformer: FrameTransform) -> int:
        self.transformers.append(transformer)
        return len(self.transformers) - 1

    def add_writer(self, writer: FrameWriter) -> int:
        self.writers.append(writer)
        return len(self.writers) - 1

    def add_preprocess_task(self, task: TransformTask) -> int:
        """
        Add a task to run before the frame loop.

        Returns:
            The 0-based sequence in which the task will be executed
        """
        self.preprocess_tasks.append(task)
        return len(self.preprocess_tasks) - 1

    def add_postprocess_task(self, task: TransformTask) -> int:
        """
        Add a task to run after the frame loop.

        Returns:
            The 0-based sequence in which the task will be executed
        """
        self.postprocess_tasks.append(task)
        return len(self.postprocess_tasks) - 1

    def components(self) -> list[Component]:
        """All registered components in open order."""
        ordered: list[Component] = []
        if self.reader is not None:
            ordered.append(self.reader)
        ordered.extend(self.filters)
        ordered.extend(self.validators)
        ordered.extend(self.transformers)
        if self.mapper is not None:
            ordered.append(self.mapper)
        ordered.extend(self.writers)
        ordered.extend(self.preprocess_tasks)
        ordered.extend(self.postprocess_tasks)
        return ordered

    # -- run -------------------------------------------------------------

    def run(self) -> RunResult:
        """
        Execute the job from open to guaranteed teardown.

        Returns:
            The run outcome; ``status`` is COMPLETED or ABORTED

        Raises:
            ConfigError: If a component rejects its configuration on open
            JobError: If opening fails or a task fails fatally
        """
        if self.state is not RunStatus.CONFIGURED:
            raise JobError(f"Job '{self.name}' has already been run")

        context = self.context
        for listener in self.listeners:
            context.add_listener(listener)

        try:
            with log_operation(f"Job {self.name}", logger=logger, job_name=self.name):
                self._open(context)

                context.mark_started()
                context.fire_start()
                self.state = RunStatus.RUNNING

                self._run_tasks(self.preprocess_tasks, "pre-process", context)
                self._frame_loop(context)
                self._run_tasks(self.postprocess_tasks, "post-process", context)
        finally:
            context.mark_ended()
            status = RunStatus.ABORTED if context.is_in_error() else RunStatus.COMPLETED
            self.result = RunResult(
                job_name=self.name,
                status=status,
                error_message=context.error_message,
                counters=context.counters.model_copy(),
                started_at=context.started_at,
                ended_at=context.ended_at,
            )
            if context.started_at is not None:
                context.fire_end()
            self.shutdown()

        logger.info(
            f"Job '{self.name}' {self.result.status.value}",
            extra={"job_name": self.name, **self.result.counters.model_dump()},
        )
        return self.result

    def _open(self, context: TransformContext) -> None:
        try:
            context.open()
            self._opened.append(context)
            for component in self.components():
                component.open(context)
                self._opened.append(component)
        except (ConfigError, JobError) as e:
            context.set_error(f"Open failed: {e}")
            raise
        except Exception as e:
            message = f"Open failed: {e}"
            context.set_error(message)
            raise JobError(message) from e
        self.state = RunStatus.OPENED

    def _run_tasks(self, tasks: list[TransformTask], phase: str, context: TransformContext) -> None:
        for index, task in enumerate(tasks):
            logger.debug(f"Running {phase} task {index}: {task.name}")
            try:
                task.execute(context)
            except JobError:
                context.set_error(f"{phase} task {task.name} failed")
                raise
            except Exception as e:
                message = f"{phase} task {task.name} failed: {e}"
                context.set_error(message)
                raise JobError(message) from e

    def _frame_loop(self, context: TransformContext) -> None:
        if self.reader is None:
            logger.info(f"Job '{self.name}' has no reader, skipping frame loop")
            return

        while True:
            if context.is_in_error():
                logger.warning(f"Job '{self.name}' in error, stopping frame loop: {context.error_message}")
                self.state = RunStatus.ABORTED
                return

            try:
                frame = self.reader.read(context)
            except ReadError as e:
                context.counters.failed += 1
                context.fire_error(self.reader, str(e))
                continue
            except Exception as e:
                context.fire_error(self.reader, str(e))
                context.set_error(f"Reader {self.reader.name} failed: {e}")
                continue

            if frame is None:
                return

            context.counters.read += 1
            txn = TransactionContext(context, frame, row=context.counters.read)
            context.fire_read(txn)
            self._process_frame(txn, context)

    def _process_frame(self, txn: TransactionContext, context: TransformContext) -> None:
        """
        Run one frame through every stage. Failures are reported and end
        this frame only; the sticky context error is what stops the loop.
        """
        current: Any = None
        try:
            for current in self.filters:
                if current.matches(txn):
                    if not current.accepts:
                        context.counters.rejected += 1
                        context.fire_filtered(txn, current)
                        return
                    break

            # every validator runs so all failures of a frame get reported
            for current in self.validators:
                current.process(txn)

            if context.is_in_error():
                logger.warning(
                    f"Validation halted job '{self.name}' at row {txn.row}: {context.error_message}"
                )
                return

            for current in self.transformers:
                txn.source_frame = current.process(txn.source_frame, context)

            current = self.mapper
            if self.mapper is not None:
                self.mapper.process(txn)
            if txn.target_frame is None:
                txn.target_frame = txn.source_frame.copy()
            target = txn.target_frame.freeze()

        except Exception as e:
            context.counters.failed += 1
            logger.error(f"Row {txn.row} failed in {getattr(current, 'name', 'engine')}: {e}", exc_info=True)
            context.fire_error(current, str(e))
            return

        failed = False
        for writer in self.writers:
            try:
                writer.write(target, context)
                context.fire_write(txn, writer)
            except Exception as e:
                failed = True
                logger.error(f"Row {txn.row} not written by {writer.name}: {e}")
                context.fire_error(writer, str(e))

        if failed:
            context.counters.failed += 1
        else:
            context.counters.written += 1

    # -- teardown --------------------------------------------------------

    def terminate(self, reason: str = "terminated") -> None:
        """
        Request a cooperative stop, e.g. from a signal handler. The frame
        loop stops before the next frame and teardown follows.
        """
        logger.warning(f"Termination requested for job '{self.name}': {reason}")
        self.context.set_error(f"Job terminated: {reason}")

    def shutdown(self) -> None:
        """
        Close everything that was opened, in reverse order.

        Runs once; later calls return immediately. Never raises: a failing
        close is logged and the remaining components are still closed.
        """
        with self._shutdown_lock:
            if self._shutdown_done:
                return
            self._shutdown_done = True

        for component in reversed(self._opened):
            try:
                component.close()
            except Exception as e:
                logger.error(f"Error closing {component!r}: {e}", exc_info=True)
        self._opened.clear()
        self.state = RunStatus.CLOSED
        logger.debug(f"Job '{self.name}' closed")
