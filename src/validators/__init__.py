"""
Validators module for lesson output validation.

Provides a reflection-driven validator for rows collected from a
streaming query:
- RecordValidator: Validates rows against a record model
"""

from .record_validators import (
    RecordValidator,
    ValidationResult,
    ValidationError,
)

__all__ = [
    "RecordValidator",
    "ValidationResult",
    "ValidationError",
]
