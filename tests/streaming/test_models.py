"""
Tests for the record models and reflection-based schema inference.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

import pytest
from pydantic import BaseModel
from pyspark.sql.types import (
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    LongType,
    StringType,
    StructField,
    StructType,
    TimestampType,
)

from src.streaming.models import (
    Person,
    Transaction,
    User,
    spark_schema,
    spark_type_for,
    to_dataframe,
)


class AllTypes(BaseModel):
    flag: bool
    count: int
    ratio: float
    label: str
    seen_at: datetime
    day: date
    price: Decimal
    note: Optional[str] = None


class Unsupported(BaseModel):
    tags: List[str]


class TestSparkSchema:
    """Tests for spark_schema()."""

    def test_person_schema(self):
        assert spark_schema(Person) == StructType([
            StructField("name", StringType(), False),
            StructField("age", LongType(), False),
        ])

    def test_transaction_schema_keeps_declaration_order(self):
        schema = spark_schema(Transaction)

        assert schema.fieldNames() == ["transaction_id", "user_id", "amount", "category", "created_at"]
        assert schema["amount"].dataType == DoubleType()
        assert schema["created_at"].dataType == TimestampType()

    def test_optional_field_is_nullable(self):
        schema = spark_schema(User)

        assert schema["email"].nullable is True
        assert schema["email"].dataType == StringType()
        assert schema["user_id"].nullable is False

    def test_type_mapping(self):
        schema = spark_schema(AllTypes)

        assert [f.dataType for f in schema.fields] == [
            BooleanType(), LongType(), DoubleType(), StringType(),
            TimestampType(), DateType(), DecimalType(38, 18), StringType(),
        ]

    def test_bool_is_not_mapped_to_long(self):
        assert spark_type_for(bool) == BooleanType()
        assert spark_type_for(int) == LongType()

    def test_unsupported_annotation_names_field(self):
        with pytest.raises(TypeError, match=r"Unsupported\.tags"):
            spark_schema(Unsupported)


class TestToDataFrameArguments:
    """Argument checks that run before Spark is touched."""

    def test_empty_records_need_model(self):
        with pytest.raises(ValueError, match="model is required"):
            to_dataframe(spark=None, records=[])

    def test_mixed_models_rejected(self):
        records = [Person(name="Andy", age=30), User(user_id=1, name="Alice", country="DE")]

        with pytest.raises(ValueError, match="Expected Person records"):
            to_dataframe(spark=None, records=records)


class TestToDataFrame:
    """Tests that build real DataFrames."""

    def test_builds_typed_frame(self, spark):
        df = to_dataframe(spark, [Person(name="Michael", age=29), Person(name="Andy", age=30)])

        assert df.schema == spark_schema(Person)
        assert sorted((r.name, r.age) for r in df.collect()) == [("Andy", 30), ("Michael", 29)]

    def test_empty_frame_with_model(self, spark):
        df = to_dataframe(spark, [], model=User)

        assert df.schema == spark_schema(User)
        assert df.count() == 0
