"""
Tests for start_query and StreamingLessonJob.

The engine is replaced by mocks: these tests cover argument validation,
the writer chain that gets built, and the job lifecycle (broadcaster
start, termination conditions, cleanup).
"""

# ============================================================================
# IMPORTS AND SETUP
# ============================================================================

import time
from unittest.mock import MagicMock, Mock, patch

import pytest

from src.streaming.lessons import Lesson
from src.streaming.models import Person
from src.streaming.runner import StreamingLessonJob, start_query


def make_streaming_df():
    """A DataFrame mock whose DataStreamWriter builder methods chain."""
    writer = MagicMock(name="DataStreamWriter")
    for method in ("outputMode", "queryName", "trigger", "option", "format"):
        getattr(writer, method).return_value = writer
    df = MagicMock(name="DataFrame")
    df.writeStream = writer
    return df, writer


def make_lesson(source="csv", output_mode="append", model=None, build=None):
    return Lesson(
        name="test_lesson",
        description="Lesson used by the tests",
        source=source,
        output_mode=output_mode,
        build=build or Mock(return_value=MagicMock(name="lesson_df")),
        model=model,
    )


def make_query(active=True):
    query = MagicMock(name="StreamingQuery")
    query.isActive = active
    query.exception.return_value = None
    query.awaitTermination.side_effect = lambda timeout=None: time.sleep(0.01)
    return query


# ============================================================================
# START_QUERY TESTS
# ============================================================================

class TestStartQueryValidation:
    """Invalid combinations are rejected before the engine is touched."""

    def test_unknown_output_mode(self):
        df, writer = make_streaming_df()

        with pytest.raises(ValueError, match="output mode"):
            start_query(df, output_mode="upsert")

        writer.outputMode.assert_not_called()

    def test_unknown_sink(self):
        df, _ = make_streaming_df()

        with pytest.raises(ValueError, match="sink"):
            start_query(df, sink="kafka")

    def test_memory_sink_requires_query_name(self):
        df, _ = make_streaming_df()

        with pytest.raises(ValueError, match="query_name"):
            start_query(df, sink="memory")

    def test_table_sink_requires_table_name(self):
        df, _ = make_streaming_df()

        with pytest.raises(ValueError, match="table_name"):
            start_query(df, sink="table", checkpoint_location="/tmp/cp")

    def test_table_sink_requires_checkpoint(self):
        df, _ = make_streaming_df()

        with pytest.raises(ValueError, match="checkpoint_location"):
            start_query(df, sink="table", table_name="people")


class TestStartQueryWriter:
    """The writer chain built for each sink."""

    def test_console_sink(self):
        df, writer = make_streaming_df()

        query = start_query(df, output_mode="complete", sink="console", num_rows=5)

        writer.outputMode.assert_called_once_with("complete")
        writer.format.assert_called_once_with("console")
        writer.option.assert_any_call("truncate", "false")
        writer.option.assert_any_call("numRows", 5)
        writer.queryName.assert_not_called()
        writer.trigger.assert_not_called()
        assert query is writer.start.return_value

    def test_memory_sink_uses_query_name(self):
        df, writer = make_streaming_df()

        query = start_query(df, output_mode="update", sink="memory", query_name="ages")

        writer.outputMode.assert_called_once_with("update")
        writer.queryName.assert_called_once_with("ages")
        writer.format.assert_called_once_with("memory")
        assert query is writer.start.return_value

    def test_table_sink(self):
        df, writer = make_streaming_df()

        query = start_query(
            df, sink="table", table_name="people", checkpoint_location="/tmp/cp/people",
        )

        writer.option.assert_called_once_with("checkpointLocation", "/tmp/cp/people")
        writer.toTable.assert_called_once_with("people")
        writer.start.assert_not_called()
        assert query is writer.toTable.return_value

    def test_processing_time_trigger(self):
        df, writer = make_streaming_df()

        start_query(df, trigger_interval="5 seconds")

        writer.trigger.assert_called_once_with(processingTime="5 seconds")


# ============================================================================
# STREAMING LESSON JOB TESTS
# ============================================================================

@pytest.fixture
def spark_session():
    with patch("src.streaming.runner.create_spark_session") as factory:
        session = MagicMock(name="SparkSession")
        factory.return_value = session
        yield session


@pytest.fixture
def started_query():
    with patch("src.streaming.runner.start_query") as starter:
        query = make_query()
        starter.return_value = query
        starter.query = query
        yield starter


def _job(config, lesson, **kwargs):
    job = StreamingLessonJob(config, lesson, **kwargs)
    job.shutdown.install = Mock()
    return job


class TestStreamingLessonJob:
    """Lifecycle tests for StreamingLessonJob."""

    def test_defaults_to_lesson_output_mode(self, config):
        job = _job(config, make_lesson(output_mode="complete"))

        assert job.output_mode == "complete"
        assert job.sink == "console"
        assert job.checkpoint_location is None

    def test_output_mode_override(self, config):
        job = _job(config, make_lesson(output_mode="complete"), output_mode="update")

        assert job.output_mode == "update"

    def test_table_sink_checkpoint_under_root(self, config):
        job = _job(config, make_lesson(), sink="table")

        assert job.checkpoint_location.startswith(config.spark.checkpoint_root)
        assert job.checkpoint_location.endswith("test_lesson")

    def test_runs_until_max_runtime_then_cleans_up(self, config, spark_session, started_query):
        config.max_runtime_seconds = 1
        lesson = make_lesson()
        job = _job(config, lesson)

        started = time.monotonic()
        job.run()

        assert time.monotonic() - started >= 1
        lesson.build.assert_called_once_with(spark_session, config)
        _, kwargs = started_query.call_args
        assert kwargs["output_mode"] == "append"
        assert kwargs["sink"] == "console"
        assert kwargs["query_name"] == "test_lesson"
        started_query.query.stop.assert_called_once()
        spark_session.stop.assert_called_once()

    def test_shutdown_request_stops_waiting(self, config, spark_session, started_query):
        config.max_runtime_seconds = 60
        job = _job(config, make_lesson())
        job.shutdown.request_shutdown()

        started = time.monotonic()
        job.run()

        assert time.monotonic() - started < 5
        started_query.query.awaitTermination.assert_not_called()
        started_query.query.stop.assert_called_once()

    def test_finished_query_is_not_stopped_again(self, config, spark_session, started_query):
        started_query.query.isActive = False
        job = _job(config, make_lesson())

        job.run()

        started_query.query.stop.assert_not_called()
        spark_session.stop.assert_called_once()

    def test_failed_query_exception_propagates(self, config, spark_session, started_query):
        started_query.query.isActive = False
        started_query.query.exception.return_value = RuntimeError("query failed")
        job = _job(config, make_lesson())

        with pytest.raises(RuntimeError, match="query failed"):
            job.run()

        spark_session.stop.assert_called_once()

    def test_build_failure_propagates_and_cleans_up(self, config, spark_session, started_query):
        lesson = make_lesson(build=Mock(side_effect=ValueError("bad schema")))
        job = _job(config, lesson)

        with pytest.raises(ValueError, match="bad schema"):
            job.run()

        started_query.assert_not_called()
        spark_session.stop.assert_called_once()

    def test_socket_lesson_starts_and_stops_broadcaster(self, config, spark_session, started_query):
        config.max_runtime_seconds = 1
        with patch("src.streaming.runner.LineBroadcaster") as broadcaster_cls:
            broadcaster = broadcaster_cls.return_value
            broadcaster.wait_until_ready.return_value = True
            broadcaster.error = None

            job = _job(config, make_lesson(source="socket"))
            job.run()

        _, kwargs = broadcaster_cls.call_args
        assert kwargs["path"] == config.broadcaster.source_path
        assert kwargs["port"] == config.broadcaster.port
        broadcaster.start.assert_called_once()
        broadcaster.stop.assert_called_once()

    def test_broadcaster_not_ready_fails(self, config, spark_session, started_query):
        with patch("src.streaming.runner.LineBroadcaster") as broadcaster_cls:
            broadcaster = broadcaster_cls.return_value
            broadcaster.wait_until_ready.return_value = False

            job = _job(config, make_lesson(source="socket"))
            with pytest.raises(RuntimeError, match="did not start listening"):
                job.run()

        broadcaster.stop.assert_called_once()
        started_query.assert_not_called()
        spark_session.stop.assert_called_once()

    def test_broadcaster_error_fails(self, config, spark_session, started_query):
        with patch("src.streaming.runner.LineBroadcaster") as broadcaster_cls:
            broadcaster = broadcaster_cls.return_value
            broadcaster.wait_until_ready.return_value = True
            broadcaster.error = OSError("Address already in use")

            job = _job(config, make_lesson(source="socket"))
            with pytest.raises(RuntimeError, match="Address already in use"):
                job.run()

        broadcaster.stop.assert_called_once()
        started_query.assert_not_called()

    def test_csv_lesson_does_not_start_broadcaster(self, config, spark_session, started_query):
        config.max_runtime_seconds = 1
        with patch("src.streaming.runner.LineBroadcaster") as broadcaster_cls:
            _job(config, make_lesson(source="csv")).run()

        broadcaster_cls.assert_not_called()

    def test_memory_sink_collects_and_validates(self, config, spark_session, started_query):
        spark_session.table.return_value.collect.return_value = [
            {"name": "Michael", "age": 29},
            {"name": "Andy", "age": None},
        ]
        job = _job(config, make_lesson(source="csv", model=Person), sink="memory")
        job.shutdown.request_shutdown()

        job.run()

        started_query.query.processAllAvailable.assert_called_once()
        spark_session.table.assert_called_once_with("test_lesson")
        assert len(job.results) == 2
        assert job.validation.valid_count == 1
        assert job.validation.invalid_count == 1

    def test_memory_sink_socket_skips_process_all_available(self, config, spark_session, started_query):
        spark_session.table.return_value.collect.return_value = []
        with patch("src.streaming.runner.LineBroadcaster") as broadcaster_cls:
            broadcaster_cls.return_value.wait_until_ready.return_value = True
            broadcaster_cls.return_value.error = None
            job = _job(config, make_lesson(source="socket"), sink="memory")
            job.shutdown.request_shutdown()
            job.run()

        started_query.query.processAllAvailable.assert_not_called()
        assert job.results == []
        assert job.validation is None
