"""Class calendar, attendance and belt progression engine for the dojo portal.

Schedules are kept per city (weekly fixed classes, one-off flexible classes,
whole-day cancellations); attendance drives the attended-classes counter and
the milestone achievements shown on student profiles.
"""

from src.dojo.models import (
    Cancellation,
    FixedClass,
    FlexibleClass,
    Occurrence,
    SourceKind,
)
from src.dojo.resolver import resolve_occurrences
from src.dojo.services import Services, build_services

__all__ = [
    "Cancellation",
    "FixedClass",
    "FlexibleClass",
    "Occurrence",
    "SourceKind",
    "resolve_occurrences",
    "Services",
    "build_services",
]
