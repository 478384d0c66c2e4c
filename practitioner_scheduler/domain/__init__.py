"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability_calculator import AvailabilityCalculator
from .conflict_checker import ConflictChecker
from .models import (
    AvailabilityWindow,
    BookedAppointment,
    CandidateAppointment,
    ConflictResult,
    FreeSlot,
    PartialOverlap,
    TimeRange,
)

__all__ = [
    "AvailabilityCalculator",
    "AvailabilityWindow",
    "BookedAppointment",
    "CandidateAppointment",
    "ConflictChecker",
    "ConflictResult",
    "FreeSlot",
    "PartialOverlap",
    "TimeRange",
]
