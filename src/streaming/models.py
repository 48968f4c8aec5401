"""
Record models used by the lessons and reflection-based schema inference.

Streaming file sources need a declared schema up front. Instead of
writing ``StructType`` literals by hand, the schema is derived from the
pydantic model's field annotations, so the record class is the single
source of truth for both Python-side rows and Spark columns.
"""

import types
import typing
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel
from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.types import (
    BooleanType,
    DataType,
    DateType,
    DecimalType,
    DoubleType,
    LongType,
    StringType,
    StructField,
    StructType,
    TimestampType,
)


class Person(BaseModel):
    """A person line broadcast over the socket as ``name,age``."""
    name: str
    age: int


class User(BaseModel):
    """A row of the static users table."""
    user_id: int
    name: str
    country: str
    email: Optional[str] = None


class Transaction(BaseModel):
    """A row of the streamed transaction files."""
    transaction_id: int
    user_id: int
    amount: float
    category: str
    created_at: datetime


# Python annotation -> Spark type. bool must be checked before int.
TYPE_MAPPING: List[Tuple[type, DataType]] = [
    (bool, BooleanType()),
    (int, LongType()),
    (float, DoubleType()),
    (str, StringType()),
    (datetime, TimestampType()),
    (date, DateType()),
    (Decimal, DecimalType(38, 18)),
]


def _unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Return (inner annotation, nullable) for ``Optional[X]`` / ``X | None``."""
    origin = typing.get_origin(annotation)
    union_types = (typing.Union,)
    if hasattr(types, "UnionType"):
        union_types += (types.UnionType,)
    if origin in union_types:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0], True
    return annotation, False


def spark_type_for(annotation: Any) -> DataType:
    """Map a single Python annotation to a Spark ``DataType``.

    Raises:
        TypeError: If the annotation has no Spark counterpart.
    """
    if isinstance(annotation, type):
        for python_type, spark_type in TYPE_MAPPING:
            if issubclass(annotation, python_type):
                return spark_type
    raise TypeError(f"Unsupported annotation: {annotation!r}")


def spark_schema(model: Type[BaseModel]) -> StructType:
    """
    Infer a Spark schema from a pydantic model by reflection.

    Field order follows the model's declaration order. ``Optional`` fields
    become nullable; every other field is declared non-nullable.

    Args:
        model: pydantic model class

    Returns:
        StructType with one field per model field

    Raises:
        TypeError: If a field's annotation is not supported
    """
    fields = []
    for name, info in model.model_fields.items():
        inner, nullable = _unwrap_optional(info.annotation)
        try:
            data_type = spark_type_for(inner)
        except TypeError:
            raise TypeError(
                f"{model.__name__}.{name}: unsupported annotation {info.annotation!r}"
            ) from None
        fields.append(StructField(name, data_type, nullable))
    return StructType(fields)


def to_rows(records: Sequence[BaseModel]) -> List[Dict[str, Any]]:
    return [record.model_dump() for record in records]


def to_dataframe(
    spark: SparkSession,
    records: Sequence[BaseModel],
    model: Optional[Type[BaseModel]] = None,
) -> DataFrame:
    """
    Build a static DataFrame from model instances using the reflected schema.

    Args:
        spark: Active SparkSession
        records: Instances of a single model class
        model: Model class; required when ``records`` is empty

    Raises:
        ValueError: If ``records`` is empty and no model is given, or if
            records of different models are mixed
    """
    if model is None:
        if not records:
            raise ValueError("model is required to build an empty DataFrame")
        model = type(records[0])

    for record in records:
        if type(record) is not model:
            raise ValueError(
                f"Expected {model.__name__} records, got {type(record).__name__}"
            )

    schema = spark_schema(model)
    columns = [f.name for f in schema.fields]
    data = [tuple(row[c] for c in columns) for row in to_rows(records)]
    return spark.createDataFrame(data, schema=schema)
