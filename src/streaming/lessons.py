"""
The tutorial sequence.

Each lesson names its source, builds a streaming DataFrame from it and
declares the output mode that fits the query: plain projections and
filters append, aggregations use complete or update.

Run one with ``python -m src.streaming <lesson>``.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

from pydantic import BaseModel
from pyspark.sql import DataFrame, SparkSession

from src.streaming import transforms
from src.streaming.models import Person, Transaction, User, spark_schema
from src.streaming.sources import csv_stream, socket_stream, static_csv
from src.streaming.runner import OUTPUT_MODES, SINKS, StreamingLessonJob
from src.utils.config import Config
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lesson:
    """A single tutorial step."""
    name: str
    description: str
    source: str
    output_mode: str
    build: Callable[[SparkSession, Config], DataFrame]
    model: Optional[Type[BaseModel]] = None


# ============================================================================
# SOURCES
# ============================================================================


def _lines(spark: SparkSession, config: Config) -> DataFrame:
    return socket_stream(spark, config.broadcaster.host, config.broadcaster.port)


def _people(spark: SparkSession, config: Config) -> DataFrame:
    return transforms.parse_people(_lines(spark, config))


def _transactions(spark: SparkSession, config: Config) -> DataFrame:
    return csv_stream(
        spark,
        config.data.transactions_dir,
        schema=spark_schema(Transaction),
        max_files_per_trigger=config.data.max_files_per_trigger,
    )


def _users(spark: SparkSession, config: Config) -> DataFrame:
    return static_csv(spark, config.data.users_path, schema=spark_schema(User))


def _enriched(spark: SparkSession, config: Config) -> DataFrame:
    return transforms.enrich_transactions(_transactions(spark, config), _users(spark, config))


# ============================================================================
# REGISTRY
# ============================================================================


LESSONS: List[Lesson] = [
    Lesson(
        name="socket_echo",
        description="Echo raw lines read from the socket",
        source="socket",
        output_mode="append",
        build=_lines,
    ),
    Lesson(
        name="word_count",
        description="Running word count over socket lines",
        source="socket",
        output_mode="complete",
        build=lambda spark, config: transforms.word_counts(_lines(spark, config)),
    ),
    Lesson(
        name="people_select",
        description="Parse 'name,age' lines into typed columns",
        source="socket",
        output_mode="append",
        build=_people,
        model=Person,
    ),
    Lesson(
        name="adults_filter",
        description="Keep people aged 18 or over",
        source="socket",
        output_mode="append",
        build=lambda spark, config: transforms.adults(_people(spark, config)),
        model=Person,
    ),
    Lesson(
        name="age_histogram",
        description="Count people per age, emitting only changed rows",
        source="socket",
        output_mode="update",
        build=lambda spark, config: transforms.count_by_age(_people(spark, config)),
    ),
    Lesson(
        name="average_age",
        description="Global average age of everyone seen so far",
        source="socket",
        output_mode="complete",
        build=lambda spark, config: transforms.average_age(_people(spark, config)),
    ),
    Lesson(
        name="transactions_stream",
        description="Stream transaction CSV files with a reflected schema",
        source="csv",
        output_mode="append",
        build=_transactions,
        model=Transaction,
    ),
    Lesson(
        name="spend_per_user",
        description="Total, count and average spend per user",
        source="csv",
        output_mode="complete",
        build=lambda spark, config: transforms.spend_per_user(_transactions(spark, config)),
    ),
    Lesson(
        name="enriched_transactions",
        description="Join the transaction stream with the static users table",
        source="csv",
        output_mode="append",
        build=_enriched,
        model=Transaction,
    ),
    Lesson(
        name="spend_per_country",
        description="Aggregate joined transactions per country",
        source="csv",
        output_mode="complete",
        build=lambda spark, config: transforms.spend_per_country(_enriched(spark, config)),
    ),
    Lesson(
        name="large_transactions_sql",
        description="Select large transactions with plain SQL over a temp view",
        source="csv",
        output_mode="append",
        build=lambda spark, config: transforms.large_transactions_sql(_transactions(spark, config)),
        model=Transaction,
    ),
]

_BY_NAME: Dict[str, Lesson] = {lesson.name: lesson for lesson in LESSONS}


def list_lessons() -> List[str]:
    return [lesson.name for lesson in LESSONS]


def get_lesson(name: str) -> Lesson:
    """Look up a lesson by name.

    Raises:
        KeyError: If no lesson has that name
    """
    try:
        return _BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown lesson {name!r}; known lessons: {', '.join(list_lessons())}") from None


# ============================================================================
# CLI ENTRYPOINT
# ============================================================================


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m src.streaming", description="Run a streaming lesson")
    parser.add_argument("lesson", nargs="?", help="lesson name (see --list)")
    parser.add_argument("--list", action="store_true", help="list lessons and exit")
    parser.add_argument("--sink", choices=SINKS, default="console")
    parser.add_argument("--output-mode", choices=OUTPUT_MODES, default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for running a lesson."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.list:
        for lesson in LESSONS:
            print(f"{lesson.name:<24} {lesson.source:<7} {lesson.output_mode:<9} {lesson.description}")
        return 0

    if not args.lesson:
        parser.error("a lesson name is required")

    try:
        lesson = get_lesson(args.lesson)
    except KeyError as e:
        parser.error(e.args[0])

    try:
        config = Config.from_env(job_name=lesson.name)
    except ValueError as e:
        setup_logging(json_output=True, job_name=lesson.name)
        logger.error(f"Invalid configuration: {e}")
        return 2
    setup_logging(level=config.log_level, json_output=True, job_name=lesson.name)

    try:
        StreamingLessonJob(config, lesson, sink=args.sink, output_mode=args.output_mode).run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Fatal error: {type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
