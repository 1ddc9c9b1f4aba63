"""Recurrence rule parsing and expansion.

Pure functions with no Django dependency; callers pass any configured caps.
"""

from .rules import DEFAULT_MAX_OCCURRENCES
from .rules import RecurrenceDay
from .rules import RecurrenceFrequency
from .rules import RecurrenceParseError
from .rules import RecurrencePattern
from .rules import describe_recurrence
from .rules import format_recurrence_pattern
from .rules import generate_occurrences
from .rules import parse_recurrence_pattern
from .rules import parse_recurrence_rule
from .rules import rule_for_legacy_pattern

__all__ = [
    "DEFAULT_MAX_OCCURRENCES",
    "RecurrenceDay",
    "RecurrenceFrequency",
    "RecurrenceParseError",
    "RecurrencePattern",
    "describe_recurrence",
    "format_recurrence_pattern",
    "generate_occurrences",
    "parse_recurrence_pattern",
    "parse_recurrence_rule",
    "rule_for_legacy_pattern",
]
