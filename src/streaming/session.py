"""SparkSession factory for the lessons."""

import logging

from pyspark.sql import SparkSession

from src.utils.config import SparkConfig

logger = logging.getLogger(__name__)


def create_spark_session(spark_config: SparkConfig) -> SparkSession:
    """Create (or reuse) a local SparkSession configured for small streaming demos."""
    logger.info("Creating SparkSession with configuration:")
    logger.info(f"  Master: {spark_config.master}")
    logger.info(f"  Shuffle partitions: {spark_config.shuffle_partitions}")

    spark = (SparkSession.builder
             .master(spark_config.master)
             .appName(spark_config.app_name)
             .config("spark.sql.shuffle.partitions", str(spark_config.shuffle_partitions))
             # console and memory sinks use throwaway checkpoints
             .config("spark.sql.streaming.forceDeleteTempCheckpointLocation", "true")
             .config("spark.ui.showConsoleProgress", "false")
             .getOrCreate())

    spark.sparkContext.setLogLevel(spark_config.log_level)
    logger.info(f"SparkSession created: {spark.sparkContext.applicationId}")
    return spark
