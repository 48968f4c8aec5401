"""
Shared fixtures.

The ``spark`` fixture starts one local SparkSession for the whole run.
Tests that use it are skipped when pyspark or a Java runtime is missing,
so the pure-Python tests still run anywhere.
"""

import os
import shutil

import pytest

from src.utils.config import Config, SparkConfig


def _java_available() -> bool:
    return bool(os.environ.get("JAVA_HOME")) or shutil.which("java") is not None


@pytest.fixture(scope="session")
def spark():
    pytest.importorskip("pyspark")
    if not _java_available():
        pytest.skip("Java runtime not available for a local SparkSession")

    from src.streaming.session import create_spark_session

    session = create_spark_session(SparkConfig(
        master="local[2]",
        app_name="streaming-tutorial-tests",
        shuffle_partitions=1,
        log_level="ERROR",
    ))
    yield session
    for query in session.streams.active:
        query.stop()
    session.stop()


@pytest.fixture
def config(tmp_path):
    """Default configuration with checkpoints under a temp directory."""
    cfg = Config(job_name="TestJob", max_runtime_seconds=5)
    cfg.spark.checkpoint_root = str(tmp_path / "checkpoints")
    return cfg
