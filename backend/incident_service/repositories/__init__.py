"""
Repository Pattern Implementation

All incident and check data access goes through repositories bound to a
single transactional session.
"""

from .incidents import IncidentRepository

__all__ = [
    "IncidentRepository",
]
