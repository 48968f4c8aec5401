"""
Record Validators Module

Validates rows collected from a lesson's output (typically the memory
sink) against the record model the lesson is expected to produce.

Required and nullable fields are derived from the model itself: every
``Optional`` field may be null, every other field must be present and
non-null.
"""

import logging
import typing
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Set, Type

from pydantic import BaseModel

logger = logging.getLogger(__name__)


@dataclass
class ValidationError:
    """Represents a validation error for a single record."""

    record_identifier: str
    error_type: str
    message: str
    missing_fields: List[str] = field(default_factory=list)


@dataclass
class ValidationResult:
    """Result of validating a set of records."""

    validator_name: str
    is_valid: bool
    record_count: int
    valid_count: int
    invalid_count: int
    errors: List[ValidationError] = field(default_factory=list)
    field_completeness: Dict[str, float] = field(default_factory=dict)
    message: str = ""

    def __str__(self) -> str:
        status = "PASSED" if self.is_valid else "FAILED"
        return (
            f"{self.validator_name} validation {status}: "
            f"{self.valid_count}/{self.record_count} records valid"
        )


def _allows_none(annotation: Any) -> bool:
    return type(None) in typing.get_args(annotation)


def _as_mapping(record: Any) -> Mapping[str, Any]:
    """Accept plain dicts, pyspark Rows and pydantic models."""
    if isinstance(record, Mapping):
        return record
    if isinstance(record, BaseModel):
        return record.model_dump()
    if hasattr(record, "asDict"):
        return record.asDict()
    raise TypeError(f"Cannot validate record of type {type(record).__name__}")


class RecordValidator:
    """
    Validator for rows shaped like a given record model.

    Only the model's own fields are checked; extra columns (for example
    ``user_name`` added by a join) are ignored.
    """

    def __init__(self, model: Type[BaseModel]):
        self.model = model
        self.name = f"{model.__name__}Validator"
        self.nullable_fields: Set[str] = {
            name for name, info in model.model_fields.items() if _allows_none(info.annotation)
        }
        self.required_fields: Set[str] = set(model.model_fields) - self.nullable_fields

    def validate(self, records: Sequence[Any]) -> ValidationResult:
        """
        Validate a list of records.

        Args:
            records: dicts, Rows or model instances

        Returns:
            ValidationResult with validation status and details
        """
        errors: List[ValidationError] = []
        valid_count = 0
        field_presence: Dict[str, int] = {f: 0 for f in self.required_fields | self.nullable_fields}

        for index, raw in enumerate(records):
            record = _as_mapping(raw)
            record_errors = self._validate_record(index, record)
            if record_errors:
                errors.extend(record_errors)
            else:
                valid_count += 1

            for field_name in field_presence:
                if record.get(field_name) is not None:
                    field_presence[field_name] += 1

        record_count = len(records)
        invalid_count = record_count - valid_count
        is_valid = invalid_count == 0

        field_completeness = {}
        if record_count > 0:
            for field_name, count in field_presence.items():
                field_completeness[field_name] = round(count / record_count * 100, 2)

        result = ValidationResult(
            validator_name=self.name,
            is_valid=is_valid,
            record_count=record_count,
            valid_count=valid_count,
            invalid_count=invalid_count,
            errors=errors,
            field_completeness=field_completeness,
            message=self._build_message(is_valid, record_count, errors),
        )
        logger.debug(str(result))
        return result

    def _validate_record(self, index: int, record: Mapping[str, Any]) -> List[ValidationError]:
        """Validate a single record."""
        missing_fields = sorted(
            name for name in self.required_fields if record.get(name) is None
        )
        if not missing_fields:
            return []
        return [ValidationError(
            record_identifier=self._get_record_identifier(index, record),
            error_type="missing_required_fields",
            message=f"Missing required fields: {', '.join(missing_fields)}",
            missing_fields=missing_fields,
        )]

    def _get_record_identifier(self, index: int, record: Mapping[str, Any]) -> str:
        """Use the first model field as a label, falling back to the row index."""
        first_field = next(iter(self.model.model_fields))
        value = record.get(first_field)
        if value is None:
            return f"row#{index}"
        return f"{first_field}={value}"

    def _build_message(self, is_valid: bool, record_count: int, errors: List[ValidationError]) -> str:
        """Build a descriptive message for the validation result."""
        if is_valid:
            return f"Validated {record_count} {self.model.__name__} records successfully"

        all_missing = set()
        for error in errors:
            all_missing.update(error.missing_fields)

        return (
            f"Validation failed: {len(errors)} records invalid. "
            f"Missing fields: {', '.join(sorted(all_missing))}"
        )
