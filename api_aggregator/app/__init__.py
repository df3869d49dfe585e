"""
Location Data Aggregator Service
Resolves a client's location and aggregates data from multiple external providers.
"""

__version__ = "1.0.0"
__author__ = "Location Data Aggregator Team"
__description__ = "Location data aggregation service with retry, timeout and circuit breaker resilience"
