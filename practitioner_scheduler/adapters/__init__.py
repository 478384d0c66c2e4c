"""
Adapters layer - External integrations (practice-management gateway).
"""

from .mock_windmill_client import MockWindmillClient
from .windmill_client import WindmillClient

__all__ = ["WindmillClient", "MockWindmillClient"]
