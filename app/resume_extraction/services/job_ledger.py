"""
Job ledger: job lifecycle, audit trail, stored results and credit debits.

Every extraction attempt is recorded as a Job that starts in PROCESSING and
ends exactly once in COMPLETED or FAILED. Credits are debited only together
with the COMPLETED transition, in the same transaction.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import ResumeData
from ..models_db import (
    Account,
    AuditAction,
    AuditEntry,
    AuditStatus,
    Job,
    JobStatus,
    ResumeRecord,
)
from .ai.mode import ModeDecision
from .exceptions import (
    InsufficientCredits,
    JobStateError,
    PrincipalNotFound,
    StoreError,
)
from .pdf_service import DocumentBuffer

logger = logging.getLogger(__name__)

UPLOAD_MESSAGE = "File uploaded successfully"
EXTRACT_MESSAGE = "Resume data extracted successfully"
FAILED_MESSAGE = "Processing failed: {}"


def upgrade_hint(plan_type: str | None) -> str:
    """Plan-aware advice shown with an insufficient credits error."""
    if not plan_type or plan_type.upper() == "FREE":
        return (
            "Please subscribe to a plan to get more credits, or wait for your "
            "subscription to renew."
        )
    return "Please top up your credits or wait for your subscription to renew."


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JobLedger:
    """Persistence operations for extraction jobs, bound to one session."""

    def __init__(self, db: Session, credits_per_job: int = 100):
        self.db = db
        self.credits_per_job = credits_per_job

    # -------------------------------------------------------------------------
    # Credits
    # -------------------------------------------------------------------------

    def get_account(self, principal_id: uuid.UUID) -> Account:
        """
        Raises:
            PrincipalNotFound: If no account exists for the principal.
        """
        account = self.db.get(Account, principal_id)
        if account is None:
            raise PrincipalNotFound(f"No account for principal {principal_id}")
        return account

    def ensure_credits(self, principal_id: uuid.UUID) -> int:
        """
        Check that the principal can afford one job.

        Returns:
            The current balance.

        Raises:
            PrincipalNotFound: If the principal has no account.
            InsufficientCredits: If the balance is below the job cost.
        """
        account = self.get_account(principal_id)
        if account.credits < self.credits_per_job:
            logger.info(
                "Principal %s has %d credits, %d required",
                principal_id,
                account.credits,
                self.credits_per_job,
            )
            raise InsufficientCredits(
                account.credits,
                self.credits_per_job,
                hint=upgrade_hint(account.plan_type),
            )
        return account.credits

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open_job(self, principal_id: uuid.UUID, document: DocumentBuffer) -> Job:
        """Create a PROCESSING job and its upload audit entry in one commit."""
        job = Job(
            id=uuid.uuid4(),
            account_id=principal_id,
            file_name=document.file_name,
            file_size=document.size,
            file_type=document.media_type,
            status=JobStatus.PROCESSING,
        )
        try:
            self.db.add(job)
            self.db.add(
                AuditEntry(
                    job_id=job.id,
                    account_id=principal_id,
                    action=AuditAction.UPLOAD,
                    status=AuditStatus.SUCCESS,
                    message=UPLOAD_MESSAGE,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to open job for %s: %s", document.file_name, e)
            raise StoreError(f"Failed to create job: {e}") from e

        self.db.refresh(job)
        logger.info("Opened job %s for %s", job.id, document.file_name)
        return job

    def complete_job(
        self,
        job: Job,
        result: ResumeData,
        decision: ModeDecision,
        model: str,
    ) -> None:
        """
        Commit a successful extraction.

        Marks the job COMPLETED, upserts its ResumeRecord, appends the extract
        audit entry and debits the job cost, all in one transaction.

        Raises:
            JobStateError: If the job is already terminal.
            InsufficientCredits: If the balance no longer covers the cost.
            StoreError: If the store rejects the transaction.
        """
        self._require_processing(job)
        cost = self.credits_per_job

        try:
            debit = self.db.execute(
                update(Account)
                .where(Account.id == job.account_id, Account.credits >= cost)
                .values(credits=Account.credits - cost)
                .execution_options(synchronize_session=False)
            )
            if debit.rowcount != 1:
                self.db.rollback()
                account = self.get_account(job.account_id)
                logger.warning(
                    "Debit of %d credits for job %s matched no row (balance %d)",
                    cost,
                    job.id,
                    account.credits,
                )
                raise InsufficientCredits(
                    account.credits, cost, hint=upgrade_hint(account.plan_type)
                )

            job.status = JobStatus.COMPLETED
            job.error_message = None
            job.completed_at = _now()

            data = result.to_wire()
            record = (
                self.db.query(ResumeRecord)
                .filter(ResumeRecord.job_id == job.id)
                .one_or_none()
            )
            if record is None:
                self.db.add(
                    ResumeRecord(
                        job_id=job.id,
                        account_id=job.account_id,
                        data=data,
                        mode=decision.mode.value,
                        model=model,
                    )
                )
            else:
                record.data = data
                record.mode = decision.mode.value
                record.model = model

            self.db.add(
                AuditEntry(
                    job_id=job.id,
                    account_id=job.account_id,
                    action=AuditAction.EXTRACT,
                    status=AuditStatus.SUCCESS,
                    message=EXTRACT_MESSAGE,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to complete job %s: %s", job.id, e)
            raise StoreError(f"Failed to store extraction result: {e}") from e

        logger.info(
            "Job %s completed (mode=%s, model=%s, debited %d credits)",
            job.id,
            decision.mode.value,
            model,
            cost,
        )

    def fail_job(self, job: Job, message: str) -> None:
        """
        Mark a job FAILED and append the failed extract audit entry. No debit.

        Raises:
            JobStateError: If the job is already terminal.
            StoreError: If the store rejects the transaction.
        """
        self._require_processing(job)
        try:
            job.status = JobStatus.FAILED
            job.error_message = message
            self.db.add(
                AuditEntry(
                    job_id=job.id,
                    account_id=job.account_id,
                    action=AuditAction.EXTRACT,
                    status=AuditStatus.FAILED,
                    message=FAILED_MESSAGE.format(message),
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to mark job %s failed: %s", job.id, e)
            raise StoreError(f"Failed to record job failure: {e}") from e

        logger.info("Job %s failed: %s", job.id, message)

    def _require_processing(self, job: Job) -> None:
        if job.is_terminal:
            raise JobStateError(
                f"Job {job.id} is {job.status.value}, expected processing"
            )

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def get_job(self, principal_id: uuid.UUID, job_id: uuid.UUID) -> Job | None:
        """A job owned by the principal, or None."""
        return (
            self.db.query(Job)
            .filter(Job.id == job_id, Job.account_id == principal_id)
            .one_or_none()
        )

    def list_jobs(
        self, principal_id: uuid.UUID, limit: int = 50, offset: int = 0
    ) -> tuple[list[Job], int]:
        """The principal's jobs, newest first, and the total count."""
        query = self.db.query(Job).filter(Job.account_id == principal_id)
        total = query.count()
        jobs = (
            query.order_by(Job.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return jobs, total

    def get_audit_trail(self, job_id: uuid.UUID) -> list[AuditEntry]:
        return (
            self.db.query(AuditEntry)
            .filter(AuditEntry.job_id == job_id)
            .order_by(AuditEntry.id)
            .all()
        )

    def get_result(self, job_id: uuid.UUID) -> ResumeRecord | None:
        return (
            self.db.query(ResumeRecord)
            .filter(ResumeRecord.job_id == job_id)
            .one_or_none()
        )
