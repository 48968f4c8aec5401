"""
Stream-starting helper and the job that runs a single lesson.

``start_query`` is the one place a DataFrame is turned into a running
streaming query. ``StreamingLessonJob`` wraps it with the session,
broadcaster and shutdown lifecycle so a lesson can run from the command
line exactly as it would from a notebook cell.
"""

import logging
import sys
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.streaming import StreamingQuery

from src.broadcaster.broadcaster import LineBroadcaster
from src.streaming.session import create_spark_session
from src.utils.config import Config
from src.utils.logging import StructuredFormatter
from src.utils.shutdown import GracefulShutdown
from src.validators.record_validators import RecordValidator, ValidationResult

if TYPE_CHECKING:
    from src.streaming.lessons import Lesson

logger = logging.getLogger(__name__)

OUTPUT_MODES = ("append", "complete", "update")
SINKS = ("console", "memory", "table")

# How long to wait for the broadcaster's port before giving up
BROADCASTER_READY_TIMEOUT = 10.0


def start_query(
    df: DataFrame,
    output_mode: str = "append",
    sink: str = "console",
    query_name: Optional[str] = None,
    table_name: Optional[str] = None,
    trigger_interval: Optional[str] = None,
    checkpoint_location: Optional[str] = None,
    truncate: bool = False,
    num_rows: int = 20,
) -> StreamingQuery:
    """
    Start a streaming query and return it without blocking.

    Args:
        df: Streaming DataFrame to write
        output_mode: "append", "complete" or "update"
        sink: "console", "memory" or "table"
        query_name: Query name; also the in-memory table name for the memory sink
        table_name: Destination table for the table sink
        trigger_interval: Processing-time trigger such as "5 seconds";
            None runs micro-batches as fast as data arrives
        checkpoint_location: Checkpoint directory; required for the table sink
        truncate: Truncate long values in console output
        num_rows: Rows printed per batch by the console sink

    Returns:
        The started StreamingQuery

    Raises:
        ValueError: If the mode/sink combination is invalid
    """
    if output_mode not in OUTPUT_MODES:
        raise ValueError(f"Unsupported output mode {output_mode!r}, expected one of {OUTPUT_MODES}")
    if sink not in SINKS:
        raise ValueError(f"Unsupported sink {sink!r}, expected one of {SINKS}")
    if sink == "memory" and not query_name:
        raise ValueError("The memory sink requires a query_name")
    if sink == "table":
        if not table_name:
            raise ValueError("The table sink requires a table_name")
        if not checkpoint_location:
            raise ValueError("The table sink requires a checkpoint_location")

    logger.info(
        f"Starting streaming query {query_name or '<unnamed>'}",
        extra={"output_mode": output_mode, "sink": sink, "trigger": trigger_interval},
    )

    writer = df.writeStream.outputMode(output_mode)
    if query_name:
        writer = writer.queryName(query_name)
    if trigger_interval:
        writer = writer.trigger(processingTime=trigger_interval)
    if checkpoint_location:
        writer = writer.option("checkpointLocation", checkpoint_location)

    if sink == "console":
        query = (writer.format("console")
                 .option("truncate", str(truncate).lower())
                 .option("numRows", num_rows)
                 .start())
    elif sink == "memory":
        query = writer.format("memory").start()
    else:
        query = writer.toTable(table_name)

    logger.info(f"Streaming query started: id={query.id}")
    return query


class StreamingLessonJob:
    """
    Run one lesson end to end.

    Lifecycle:
    1. Create the SparkSession
    2. Start the broadcaster thread if the lesson reads the socket
    3. Build the lesson DataFrame and start the query
    4. Wait until max runtime, a shutdown signal or query termination
    5. Stop the query, the broadcaster and the session
    """

    def __init__(
        self,
        config: Config,
        lesson: "Lesson",
        sink: str = "console",
        output_mode: Optional[str] = None,
    ):
        self.config = config
        self.lesson = lesson
        self.sink = sink
        self.output_mode = output_mode or lesson.output_mode
        self.logger = self._setup_logging()

        self.spark: Optional[SparkSession] = None
        self.query: Optional[StreamingQuery] = None
        self.broadcaster: Optional[LineBroadcaster] = None
        self.results: List[Any] = []
        self.validation: Optional[ValidationResult] = None
        self.shutdown = GracefulShutdown(logger=self.logger)

    def _setup_logging(self) -> logging.Logger:
        """Set up structured logging for this job."""
        numeric_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(numeric_level)
        handler.setFormatter(StructuredFormatter(self.config.job_name))

        job_logger = logging.getLogger(f"{__name__}.{self.lesson.name}")
        job_logger.setLevel(numeric_level)
        job_logger.handlers.clear()
        job_logger.addHandler(handler)
        job_logger.propagate = False

        return job_logger

    @property
    def query_name(self) -> str:
        return self.lesson.name

    @property
    def checkpoint_location(self) -> Optional[str]:
        if self.sink != "table":
            return None
        return str(Path(self.config.spark.checkpoint_root) / self.query_name)

    def _start_broadcaster(self) -> LineBroadcaster:
        settings = self.config.broadcaster
        broadcaster = LineBroadcaster(
            path=settings.source_path,
            host=settings.host,
            port=settings.port,
            delay_seconds=settings.delay_seconds,
            loop=settings.loop,
        )
        broadcaster.start()
        if not broadcaster.wait_until_ready(BROADCASTER_READY_TIMEOUT):
            broadcaster.stop()
            raise RuntimeError(
                f"Broadcaster did not start listening within {BROADCASTER_READY_TIMEOUT}s"
            )
        if broadcaster.error is not None:
            broadcaster.stop()
            raise RuntimeError(f"Broadcaster failed to start: {broadcaster.error}") from broadcaster.error
        self.logger.info(f"Broadcaster ready on {broadcaster.address}")
        return broadcaster

    def _await_termination(self) -> None:
        """Wait for the query to finish, time out, or be interrupted."""
        deadline = time.monotonic() + self.config.max_runtime_seconds
        while self.query.isActive:
            if self.shutdown.shutdown_requested:
                self.logger.info("Shutdown signal detected, stopping query")
                break
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.logger.info(f"Max runtime {self.config.max_runtime_seconds}s reached, stopping query")
                break
            # Raises StreamingQueryException if the query failed
            self.query.awaitTermination(timeout=min(1.0, remaining))

        if not self.query.isActive and self.query.exception() is not None:
            raise self.query.exception()

    def _collect_results(self) -> None:
        """Read back the in-memory table and validate it against the lesson model."""
        if self.lesson.source != "socket":
            # A looping socket never runs dry
            self.query.processAllAvailable()
        self.results = self.spark.table(self.query_name).collect()
        self.logger.info(f"Collected {len(self.results)} rows from memory table {self.query_name}")

        if self.lesson.model is not None:
            self.validation = RecordValidator(self.lesson.model).validate(self.results)
            if self.validation.is_valid:
                self.logger.info(str(self.validation))
            else:
                self.logger.warning(self.validation.message)

    def run(self) -> Optional[StreamingQuery]:
        """Run the lesson and return the (stopped) query."""
        if threading.current_thread() is threading.main_thread():
            self.shutdown.install()

        try:
            self.logger.info(f"Lesson {self.lesson.name} starting: {self.lesson.description}")
            self.spark = create_spark_session(self.config.spark)

            if self.lesson.source == "socket":
                self.broadcaster = self._start_broadcaster()

            df = self.lesson.build(self.spark, self.config)
            self.query = start_query(
                df,
                output_mode=self.output_mode,
                sink=self.sink,
                query_name=self.query_name,
                table_name=self.query_name if self.sink == "table" else None,
                trigger_interval=self.config.trigger_interval,
                checkpoint_location=self.checkpoint_location,
            )

            self._await_termination()

            if self.sink == "memory" and self.query.isActive:
                self._collect_results()

            self.logger.info(f"Lesson {self.lesson.name} completed")
            return self.query
        except Exception as e:
            self.logger.error(f"Lesson {self.lesson.name} failed: {e}", exc_info=True)
            raise
        finally:
            self._cleanup()

    def _cleanup(self) -> None:
        """Release the query, the broadcaster and the session."""
        self.logger.info("Starting cleanup...")
        if self.query is not None and self.query.isActive:
            self.logger.info("Stopping streaming query...")
            self.query.stop()
        if self.broadcaster is not None:
            self.logger.info("Stopping broadcaster...")
            self.broadcaster.stop()
        if self.spark is not None:
            self.logger.info("Stopping SparkSession...")
            self.spark.stop()
        self.logger.info("Cleanup completed")
