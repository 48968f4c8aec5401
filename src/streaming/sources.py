"""
Stream and static sources used by the lessons.

- socket_stream: newline-delimited text from a TCP port (the broadcaster)
- csv_stream: a directory of CSV files admitted a few files per trigger
- static_csv: a plain batch table, used as the static side of joins
"""

import logging
from pathlib import Path
from typing import Union

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.types import StructType

logger = logging.getLogger(__name__)

# Format of created_at in the sample files
TIMESTAMP_FORMAT = "yyyy-MM-dd HH:mm:ss"


def socket_stream(spark: SparkSession, host: str, port: int) -> DataFrame:
    """
    Create a streaming DataFrame reading text lines from a TCP socket.

    The result has a single ``value`` string column, one row per line.

    Raises:
        ValueError: If host is empty or port is out of range
    """
    if not host:
        raise ValueError("host is required")
    if not 1 <= port <= 65535:
        raise ValueError(f"port must be between 1 and 65535, got {port}")

    logger.info(f"Creating socket stream reader for {host}:{port}")
    return (spark.readStream
            .format("socket")
            .option("host", host)
            .option("port", port)
            .load())


def csv_stream(
    spark: SparkSession,
    directory: Union[str, Path],
    schema: StructType,
    max_files_per_trigger: int = 1,
    header: bool = True,
) -> DataFrame:
    """
    Create a streaming DataFrame over a directory of CSV files.

    File sources cannot infer a schema while streaming, so one must be
    declared. ``max_files_per_trigger`` controls how many new files each
    micro-batch admits.

    Raises:
        ValueError: If schema is missing or max_files_per_trigger < 1
    """
    if schema is None:
        raise ValueError("A schema is required for streaming file sources")
    if max_files_per_trigger < 1:
        raise ValueError("max_files_per_trigger must be at least 1")

    logger.info(
        f"Creating CSV stream reader for {directory}",
        extra={"max_files_per_trigger": max_files_per_trigger},
    )
    return (spark.readStream
            .schema(schema)
            .option("header", str(header).lower())
            .option("timestampFormat", TIMESTAMP_FORMAT)
            .option("maxFilesPerTrigger", max_files_per_trigger)
            .csv(str(directory)))


def static_csv(
    spark: SparkSession,
    path: Union[str, Path],
    schema: StructType,
    header: bool = True,
) -> DataFrame:
    """Read a CSV file as a static table with a declared schema."""
    if schema is None:
        raise ValueError("A schema is required")
    logger.info(f"Reading static table from {path}")
    return (spark.read
            .schema(schema)
            .option("header", str(header).lower())
            .option("timestampFormat", TIMESTAMP_FORMAT)
            .csv(str(path)))
