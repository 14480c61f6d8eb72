# ============================================================================
# MODULE CONTEXT - INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Core Infrastructure - Database and Utilities
# PURPOSE: Shared infrastructure for the ingestion pipeline and the village API
# EXPORTS: PostgreSQLRepository, VillageRepository, BatchWriteResult, BatchFailure,
#          SlidingWindowRateLimiter, RateLimitDecision
# DEPENDENCIES: psycopg, config
# ============================================================================

"""
Infrastructure Module

- PostgreSQL connection management (PostgreSQLRepository)
- PostGIS village store (VillageRepository)
- Sliding-window rate limiting for HTTP route groups
"""

from .postgresql import PostgreSQLRepository
from .village_repository import VillageRepository, BatchWriteResult, BatchFailure
from .rate_limiter import SlidingWindowRateLimiter, RateLimitDecision

__version__ = "1.0.0"
__all__ = [
    "PostgreSQLRepository",
    "VillageRepository",
    "BatchWriteResult",
    "BatchFailure",
    "SlidingWindowRateLimiter",
    "RateLimitDecision"
]
