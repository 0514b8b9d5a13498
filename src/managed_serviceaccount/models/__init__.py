"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for:
- ManagedServiceAccount specifications and status
- Go duration and RFC 3339 timestamp conversion
"""

from .managed_serviceaccount import (
    ManagedServiceAccount,
    ManagedServiceAccountSpec,
    ManagedServiceAccountStatus,
    Rotation,
)
from .types import format_timestamp, parse_duration

__all__ = [
    "ManagedServiceAccount",
    "ManagedServiceAccountSpec",
    "ManagedServiceAccountStatus",
    "Rotation",
    "format_timestamp",
    "parse_duration",
]
