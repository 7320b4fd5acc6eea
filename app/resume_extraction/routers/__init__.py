"""
Routers package for FastAPI endpoints.

Organized by domain:
- extract: Resume upload and extraction
- jobs: Job history and audit trail
"""

from . import extract, jobs

__all__ = ["extract", "jobs"]
