"""
Unit tests for the TransformEngine orchestrator.
"""

from unittest.mock import patch

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from framepipe.components import (
    AcceptFilter,
    DefaultFrameMapper,
    FrameListReader,
    RangeValidator,
    RejectFilter,
    RequiredFieldValidator,
)
from framepipe.components.base import FrameReader, FrameTransform, FrameWriter, TransformTask
from framepipe.context.listener import ContextListener
from framepipe.context.transform_context import TransformContext
from framepipe.core.exceptions import ConfigError, JobError, ReadError, WriteError
from framepipe.core.frame import Frame
from framepipe.core.models import RunStatus
from framepipe.engine.pipeline import TransformEngine


class Tracked:
    """Records open/close calls in a shared log"""

    log: list
    fail_open = False
    fail_close = False

    def open(self, context):
        if self.fail_open:
            raise RuntimeError(f"{self.name} open failed")
        super().open(context)
        self.log.append(("open", self.name))

    def close(self):
        self.log.append(("close", self.name))
        if self.fail_close:
            raise RuntimeError(f"{self.name} close failed")


class ListReader(Tracked, FrameListReader):
    def __init__(self, frames, log, name="reader"):
        super().__init__(frames, {"name": name})
        self.log = log


class FlakyReader(FrameReader):
    """Yields frames, raising the configured exception instead of the second one"""

    def __init__(self, frames, error):
        super().__init__()
        self.frames = list(frames)
        self.error = error
        self.calls = 0

    def read(self, context):
        self.calls += 1
        if self.calls == 2:
            raise self.error
        return Frame(self.frames.pop(0)) if self.frames else None


class Recorder(Tracked, FrameTransform):
    def __init__(self, log, name="transform", fail_on=None):
        super().__init__({"name": name})
        self.log = log
        self.seen = []
        self.fail_on = fail_on

    def process(self, frame, context):
        self.seen.append(frame.to_dict())
        if self.fail_on is not None and frame.get("id") == self.fail_on:
            raise ValueError(f"cannot transform {self.fail_on}")
        return frame


class SeenValidator(Tracked, RequiredFieldValidator):
    def __init__(self, log, field, name="validator", halt=False):
        super().__init__({"field": field, "name": name, "halt_on_fail": halt})
        self.log = log
        self.seen = []

    def process(self, txn):
        self.seen.append(txn.source_frame.to_dict())
        return super().process(txn)


class ListWriter(Tracked, FrameWriter):
    def __init__(self, log, name="writer", fail_write=False):
        super().__init__({"name": name})
        self.log = log
        self.frames = []
        self.fail_write = fail_write

    def write(self, frame, context):
        if self.fail_write:
            raise WriteError(f"{self.name} is read-only")
        assert frame.frozen
        self.frames.append(frame.to_dict())


class Task(Tracked, TransformTask):
    def __init__(self, log, name, error=None):
        super().__init__({"name": name})
        self.log = log
        self.error = error

    def execute(self, context):
        self.log.append(("execute", self.name))
        if self.error is not None:
            raise self.error


class FailureCollector(ContextListener):
    def __init__(self, failures):
        self.failures = failures

    def on_validation_failed(self, context, source, message):
        self.failures.append(message)


def events(log, kind):
    return [entry[1] for entry in log if entry[0] == kind]


@pytest.fixture
def log():
    return []


@pytest.fixture
def engine(context):
    return TransformEngine(context=context)


class TestLifecycle:
    """Tests for open/close guarantees"""

    def build(self, engine, log, fail_close=()):
        engine.set_reader(ListReader([{"id": 1, "name": "a"}], log))
        engine.add_filter(RejectFilter({"name": "filter", "field": "id", "missing": True}))
        engine.add_validator(SeenValidator(log, "name"))
        engine.add_transformer(Recorder(log))
        engine.add_writer(ListWriter(log, "writer1"))
        engine.add_writer(ListWriter(log, "writer2"))
        engine.add_preprocess_task(Task(log, "pre"))
        engine.add_postprocess_task(Task(log, "post"))
        for component in engine.components():
            if component.name in fail_close:
                component.fail_close = True

    def test_every_opened_component_closed_once_in_reverse(self, engine, log):
        self.build(engine, log)
        result = engine.run()

        assert result.status is RunStatus.COMPLETED
        assert result.succeeded
        opened = events(log, "open")
        closed = events(log, "close")
        assert opened == ["reader", "validator", "transform", "writer1", "writer2", "pre", "post"]
        assert closed == list(reversed(opened))
        assert engine.state is RunStatus.CLOSED
        assert not engine.context.is_open

    def test_close_failure_does_not_skip_remaining_closes(self, engine, log):
        self.build(engine, log, fail_close=("writer2", "transform"))
        result = engine.run()

        assert result.status is RunStatus.COMPLETED
        closed = events(log, "close")
        assert sorted(closed) == sorted(events(log, "open"))
        assert len(closed) == len(set(closed))

    def test_shutdown_runs_exactly_once(self, engine, log):
        self.build(engine, log)
        with patch.object(engine, "shutdown", wraps=engine.shutdown) as shutdown:
            engine.run()
        shutdown.assert_called_once()

        engine.shutdown()
        assert len(events(log, "close")) == len(events(log, "open"))

    def test_open_failure_closes_only_what_was_opened(self, engine, log):
        self.build(engine, log)
        engine.writers[1].fail_open = True

        with pytest.raises(JobError, match="writer2 open failed"):
            engine.run()

        assert events(log, "open") == ["reader", "validator", "transform", "writer1"]
        assert events(log, "close") == ["writer1", "transform", "validator", "reader"]
        assert events(log, "execute") == []
        assert engine.result.status is RunStatus.ABORTED
        assert not engine.result.succeeded
        assert engine.state is RunStatus.CLOSED

    def test_unconfigured_component_rejected_on_open(self, engine, log):
        engine.set_reader(ListReader([{"id": 1}, {"id": 2}], log))
        engine.add_validator(RequiredFieldValidator())
        writer = ListWriter(log)
        engine.add_writer(writer)

        with pytest.raises(ConfigError, match="RequiredFieldValidator"):
            engine.run()

        assert writer.frames == []
        assert events(log, "close") == ["reader"]
        assert engine.result.status is RunStatus.ABORTED
        assert engine.result.counters.read == 0

    def test_unconfigured_component_with_defaults_opens(self, engine):
        mapper = DefaultFrameMapper()
        engine.set_reader(FrameListReader([{"id": 1}]))
        engine.set_mapper(mapper)

        assert engine.run().status is RunStatus.COMPLETED
        assert mapper.settings.fields == {}

    def test_run_twice_rejected(self, engine):
        engine.run()
        with pytest.raises(JobError, match="already been run"):
            engine.run()

    def test_listeners_see_start_and_end(self, engine, listener):
        engine.set_reader(FrameListReader([{"id": 1}]))
        engine.add_listener(listener)
        engine.run()
        assert listener.events[0] == ("start", "test-job")
        assert listener.events[-1] == ("end", "test-job")
        assert listener.named("read") == [1]
        assert listener.named("write") == []

    def test_default_context(self):
        engine = TransformEngine(name="adhoc")
        assert isinstance(engine.context, TransformContext)
        assert engine.context.name == "adhoc"
        assert engine.run().status is RunStatus.COMPLETED


class TestStageOrder:
    """Tests for filter, validate, transform, map, write ordering"""

    def test_rejected_frame_reaches_no_later_stage(self, engine, log, listener):
        engine.set_reader(ListReader([
            {"id": 1, "status": "deleted", "name": "a"},
            {"id": 2, "status": "active", "name": "b"},
        ], log))
        engine.add_filter(RejectFilter({"field": "status", "equals": "deleted"}))
        validator = SeenValidator(log, "name")
        transform = Recorder(log)
        writer = ListWriter(log)
        engine.add_validator(validator)
        engine.add_transformer(transform)
        engine.add_writer(writer)
        engine.add_listener(listener)

        result = engine.run()

        assert [f["id"] for f in validator.seen] == [2]
        assert [f["id"] for f in transform.seen] == [2]
        assert [f["id"] for f in writer.frames] == [2]
        assert listener.named("filtered") == [1]
        assert result.counters.read == 2
        assert result.counters.rejected == 1
        assert result.counters.written == 1

    def test_first_matching_filter_decides(self, engine, log):
        engine.set_reader(ListReader([{"id": 1, "vip": "yes"}, {"id": 2, "vip": "no"}], log))
        engine.add_filter(AcceptFilter({"field": "vip", "equals": "yes"}))
        engine.add_filter(RejectFilter({}))
        writer = ListWriter(log)
        engine.add_writer(writer)

        engine.run()

        assert [f["id"] for f in writer.frames] == [1]

    def test_mapper_builds_frozen_target(self, engine, log):
        engine.set_reader(ListReader([{"id": 1, "name": "a"}], log))
        engine.set_mapper(DefaultFrameMapper({"fields": {"name": "NAME"}}))
        writer = ListWriter(log)
        engine.add_writer(writer)

        engine.run()

        assert writer.frames == [{"NAME": "a"}]


class TestValidation:
    """Tests for validation failure handling"""

    def test_non_halting_failures_still_written(self, engine, log, listener):
        engine.set_reader(ListReader([{"id": 1}, {"id": 2, "name": "b"}, {"id": 3}], log))
        engine.add_validator(SeenValidator(log, "name"))
        engine.add_validator(RangeValidator({"field": "id", "max": 2}))
        writer = ListWriter(log)
        engine.add_writer(writer)
        engine.add_listener(listener)

        result = engine.run()

        assert result.status is RunStatus.COMPLETED
        assert [f["id"] for f in writer.frames] == [1, 2, 3]
        assert len(listener.named("validation_failed")) == 3
        assert result.counters.validation_failures == 3

    @settings(max_examples=25, deadline=None)
    @given(st.lists(
        st.fixed_dictionaries({
            "name": st.one_of(st.none(), st.sampled_from(["a", "b", "c"])),
            "age": st.integers(min_value=-10, max_value=200),
        }),
        max_size=15,
    ))
    def test_property_every_frame_written_every_failure_reported_once(self, records):
        """Property test: without halting validators all frames reach the writers"""
        failures = []
        writer = ListWriter([])
        engine = TransformEngine(name="property")
        engine.set_reader(FrameListReader(records))
        engine.add_validator(RequiredFieldValidator({"field": "name"}))
        engine.add_validator(RangeValidator({"field": "age", "min": 0, "max": 120}))
        engine.add_writer(writer)
        engine.add_listener(FailureCollector(failures))

        result = engine.run()

        expected = sum(r["name"] is None for r in records) + sum(not 0 <= r["age"] <= 120 for r in records)
        assert result.status is RunStatus.COMPLETED
        assert len(writer.frames) == len(records)
        assert len(failures) == expected

    def test_halting_validator_aborts_and_runs_post_tasks(self, engine, log):
        engine.set_reader(ListReader([{"id": 1, "name": "a"}, {"id": 2}, {"id": 3, "name": "c"}], log))
        engine.add_validator(SeenValidator(log, "name", halt=True))
        writer = ListWriter(log)
        engine.add_writer(writer)
        engine.add_postprocess_task(Task(log, "post"))

        result = engine.run()

        assert result.status is RunStatus.ABORTED
        assert "name" in result.error_message
        assert [f["id"] for f in writer.frames] == [1]
        assert result.counters.read == 2
        assert events(log, "execute") == ["post"]
        assert engine.state is RunStatus.CLOSED


class TestTasks:
    """Tests for pre/post-process tasks"""

    def test_indices_match_execution_order(self, engine, log):
        pre = [engine.add_preprocess_task(Task(log, f"pre{i}")) for i in range(3)]
        post = [engine.add_postprocess_task(Task(log, f"post{i}")) for i in range(2)]

        engine.run()

        assert pre == [0, 1, 2]
        assert post == [0, 1]
        assert events(log, "execute") == ["pre0", "pre1", "pre2", "post0", "post1"]

    def test_pre_task_job_error_aborts_run(self, engine, log):
        reader = ListReader([{"id": 1}], log)
        engine.set_reader(reader)
        engine.add_preprocess_task(Task(log, "pre", error=JobError("no input yet")))
        engine.add_postprocess_task(Task(log, "post"))

        with pytest.raises(JobError, match="no input yet"):
            engine.run()

        assert events(log, "execute") == ["pre"]
        assert not reader.eof
        assert engine.result.status is RunStatus.ABORTED
        assert sorted(events(log, "close")) == sorted(events(log, "open"))

    def test_unexpected_task_error_wrapped(self, engine, log):
        engine.add_postprocess_task(Task(log, "post", error=KeyError("x")))
        with pytest.raises(JobError, match="post-process task post failed"):
            engine.run()
        assert engine.context.is_in_error()


class TestFrameErrors:
    """Tests for stage-local failures"""

    def test_read_error_skips_frame(self, engine, log, listener):
        engine.set_reader(FlakyReader([{"id": 1}, {"id": 3}], ReadError("line 2 malformed")))
        writer = ListWriter(log)
        engine.add_writer(writer)
        engine.add_listener(listener)

        result = engine.run()

        assert result.status is RunStatus.COMPLETED
        assert [f["id"] for f in writer.frames] == [1, 3]
        assert result.counters.failed == 1
        assert listener.named("error") == ["line 2 malformed"]

    def test_reader_failure_aborts(self, engine, log):
        engine.set_reader(FlakyReader([{"id": 1}, {"id": 3}], OSError("disk gone")))
        writer = ListWriter(log)
        engine.add_writer(writer)

        result = engine.run()

        assert result.status is RunStatus.ABORTED
        assert "disk gone" in result.error_message
        assert [f["id"] for f in writer.frames] == [1]

    def test_transform_failure_drops_frame_only(self, engine, log, listener):
        engine.set_reader(ListReader([{"id": 1}, {"id": 2}, {"id": 3}], log))
        engine.add_transformer(Recorder(log, fail_on=2))
        writer = ListWriter(log)
        engine.add_writer(writer)
        engine.add_listener(listener)

        result = engine.run()

        assert result.status is RunStatus.COMPLETED
        assert [f["id"] for f in writer.frames] == [1, 3]
        assert result.counters.failed == 1
        assert listener.named("error") == ["cannot transform 2"]

    def test_writer_failure_isolated(self, engine, log, listener):
        engine.set_reader(ListReader([{"id": 1}], log))
        engine.add_writer(ListWriter(log, "broken", fail_write=True))
        healthy = ListWriter(log, "healthy")
        engine.add_writer(healthy)
        engine.add_listener(listener)

        result = engine.run()

        assert healthy.frames == [{"id": 1}]
        assert result.counters.failed == 1
        assert result.counters.written == 0
        assert listener.named("error") == ["broken is read-only"]
        assert listener.named("write") == [1]


class TestTerminate:
    """Tests for cooperative termination"""

    def test_terminate_stops_before_next_frame(self, engine, log):
        class StoppingWriter(ListWriter):
            def write(self, frame, context):
                super().write(frame, context)
                engine.terminate("SIGTERM")

        writer = StoppingWriter(log)
        engine.set_reader(ListReader([{"id": 1}, {"id": 2}], log))
        engine.add_writer(writer)

        result = engine.run()

        assert result.status is RunStatus.ABORTED
        assert result.error_message == "Job terminated: SIGTERM"
        assert writer.frames == [{"id": 1}]
        assert sorted(events(log, "close")) == sorted(events(log, "open"))
