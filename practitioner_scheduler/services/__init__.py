"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_service import AvailabilityService, PracticeDataClientProtocol

__all__ = ["AvailabilityService", "PracticeDataClientProtocol"]
