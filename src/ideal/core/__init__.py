"""
Core request components.

This module contains the request metadata shared by merchant messages and
the transaction request model with its validation rules.
"""

from ideal.core.request import (
    ClockSource,
    FixedClock,
    RequestMetadata,
    RequestValidationError,
    SystemClock,
)
from ideal.core.transaction import TransactionRequest

__all__ = [
    "ClockSource",
    "FixedClock",
    "RequestMetadata",
    "RequestValidationError",
    "SystemClock",
    "TransactionRequest",
]
