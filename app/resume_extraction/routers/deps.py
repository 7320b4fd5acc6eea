"""
Shared FastAPI dependencies.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..services.exceptions import Unauthenticated
from ..services.job_ledger import JobLedger


def get_principal_id(
    x_principal_id: Annotated[str | None, Header()] = None,
) -> uuid.UUID:
    """
    Resolve the caller from the X-Principal-Id header set by the auth boundary.

    Raises:
        Unauthenticated: If the header is missing or not a UUID.
    """
    if not x_principal_id or not x_principal_id.strip():
        raise Unauthenticated("Missing X-Principal-Id header")
    try:
        return uuid.UUID(x_principal_id.strip())
    except ValueError as e:
        raise Unauthenticated(f"Malformed principal id: {x_principal_id!r}") from e


def get_ledger(db: Session = Depends(get_db)) -> JobLedger:
    """Job ledger bound to the request's database session."""
    return JobLedger(db, credits_per_job=get_settings().credits_per_job)
