"""
Incident Service Monitoring Module

Dependency health aggregation for the health endpoint.
"""

from .health_checker import HealthChecker

__all__ = [
    "HealthChecker",
]
