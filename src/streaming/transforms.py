"""
Relational operator chains applied to the lesson streams.

Every function takes and returns DataFrames and works the same way on
streaming and static input, which is what lets the tests exercise them
with ``spark.createDataFrame``.
"""

import logging
import re

from pyspark.sql import DataFrame
from pyspark.sql.functions import (
    avg,
    col,
    count,
    explode,
    expr,
    lit,
    round as spark_round,
    split,
    sum as spark_sum,
    trim,
)

logger = logging.getLogger(__name__)

JOIN_TYPES = ("inner", "left_outer")
_VIEW_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


# ============================================================================
# SOCKET LINES
# ============================================================================


def split_words(lines: DataFrame) -> DataFrame:
    """Explode each ``value`` line into one ``word`` row per whitespace token."""
    words = lines.select(explode(split(col("value"), r"\s+")).alias("word"))
    return words.filter(col("word") != "")


def word_counts(lines: DataFrame) -> DataFrame:
    return split_words(lines).groupBy("word").count()


def parse_people(lines: DataFrame) -> DataFrame:
    """
    Parse ``name,age`` lines into ``name`` and ``age`` columns.

    Lines whose age is missing or not an integer are dropped.
    """
    # try_ variants yield null instead of failing under ANSI mode
    people = lines.select(
        trim(expr("try_element_at(split(value, ','), 1)")).alias("name"),
        expr("try_cast(trim(try_element_at(split(value, ','), 2)) AS BIGINT)").alias("age"),
    )
    return people.filter(col("age").isNotNull() & (col("name") != ""))


def adults(people: DataFrame, min_age: int = 18) -> DataFrame:
    return people.filter(col("age") >= lit(min_age))


def count_by_age(people: DataFrame) -> DataFrame:
    return people.groupBy("age").count()


def average_age(people: DataFrame) -> DataFrame:
    """Global average age and row count over everything seen so far."""
    return people.agg(
        spark_round(avg("age"), 2).alias("average_age"),
        count(lit(1)).alias("people"),
    )


# ============================================================================
# TRANSACTIONS
# ============================================================================


def spend_per_user(transactions: DataFrame) -> DataFrame:
    return transactions.groupBy("user_id").agg(
        spark_round(spark_sum("amount"), 2).alias("total_amount"),
        count(lit(1)).alias("transaction_count"),
        spark_round(avg("amount"), 2).alias("avg_amount"),
    )


def enrich_transactions(transactions: DataFrame, users: DataFrame, how: str = "inner") -> DataFrame:
    """
    Join transactions against the static users table on ``user_id``.

    The transaction stream is always the left side: Spark supports inner
    and left outer stream-static joins only in that orientation.

    Raises:
        ValueError: If ``how`` is not a supported join type
    """
    if how not in JOIN_TYPES:
        raise ValueError(f"Unsupported join type {how!r}, expected one of {JOIN_TYPES}")

    user_columns = users.select(
        col("user_id"),
        col("name").alias("user_name"),
        col("country"),
    )
    return transactions.join(user_columns, on="user_id", how=how)


def spend_per_country(enriched: DataFrame) -> DataFrame:
    return enriched.groupBy("country").agg(
        spark_round(spark_sum("amount"), 2).alias("total_amount"),
        count(lit(1)).alias("transaction_count"),
    )


# ============================================================================
# SQL
# ============================================================================


def run_sql(df: DataFrame, view_name: str, query: str) -> DataFrame:
    """
    Register ``df`` as a temporary view and run raw SQL against it.

    Works for streaming DataFrames too; the result is then streaming.

    Raises:
        ValueError: If the view name is not a plain identifier
    """
    if not _VIEW_NAME.match(view_name or ""):
        raise ValueError(f"Invalid view name: {view_name!r}")

    df.createOrReplaceTempView(view_name)
    logger.info(f"Running SQL against view {view_name}")
    return df.sparkSession.sql(query)


def large_transactions_sql(transactions: DataFrame, threshold: float = 100.0) -> DataFrame:
    query = f"""
        SELECT transaction_id, user_id, category, amount, created_at
        FROM transactions
        WHERE amount >= {float(threshold)}
    """
    return run_sql(transactions, "transactions", query)
