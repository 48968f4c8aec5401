"""
Structured Streaming Tutorial

Lessons on Spark Structured Streaming's declarative API, reading either
newline-delimited text from the socket broadcaster or a directory of
transaction CSV files.

Structure:
- models.py: Person/User/Transaction records and reflection-based schemas
- session.py: SparkSession factory
- sources.py: socket, streaming CSV and static CSV sources
- transforms.py: select/filter/aggregate/join/SQL operator chains
- runner.py: start_query helper and StreamingLessonJob
- lessons.py: the ordered lesson registry and CLI
"""

__version__ = "0.1.0"

# Records and schema inference
from .models import (
    Person,
    User,
    Transaction,
    spark_schema,
    to_dataframe,
)

# Sources
from .sources import socket_stream, csv_stream, static_csv

# Query helpers
from .runner import start_query, StreamingLessonJob

# Lessons
from .lessons import Lesson, LESSONS, get_lesson, list_lessons

__all__ = [
    # Records
    "Person",
    "User",
    "Transaction",
    "spark_schema",
    "to_dataframe",
    # Sources
    "socket_stream",
    "csv_stream",
    "static_csv",
    # Query helpers
    "start_query",
    "StreamingLessonJob",
    # Lessons
    "Lesson",
    "LESSONS",
    "get_lesson",
    "list_lessons",
]
