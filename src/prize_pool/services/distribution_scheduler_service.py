import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ethereum.exceptions import (
    ChainReadError,
    ChainWriteError,
    InvalidArgument,
    WalletNotConfiguredError,
)
from ethereum.lib import ChainGateway
from hackathon.models import Hackathon
from prize_pool.exceptions import (
    DuplicateJob,
    InvalidTransition,
    OperationRejected,
    StuckAttemptMined,
)
from prize_pool.models import (
    DistributionJob,
    DistributionRecord,
    DistributionSubmission,
    EmergencyStopState,
)
from prize_pool.services.ledger_service import DistributionLedger
from prize_pool.services.retry_policy import (
    next_attempt_time,
    replacement_gas_price,
)
from utils import locking
from utils.sentry import log_error

logger = logging.getLogger(__name__)


class JobOutcome:
    SKIPPED = "skipped"
    PAUSED = "paused"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DistributionScheduler:
    """
    Drives distribution jobs from SCHEDULED to COMPLETED or FAILED.

    Every pass over a job runs under a per-hackathon cache lock, so one
    hackathon's payout is never processed by two workers at once. Inside a
    pass each record is handled under its own row lock. The emergency stop
    is read from the database before each job and before each submission.
    """

    def __init__(
        self,
        gateway: ChainGateway | None = None,
        ledger: DistributionLedger | None = None,
        max_retry_attempts: int | None = None,
        retry_base_delay: int | None = None,
    ):
        self.gateway = gateway or ChainGateway()
        self.ledger = ledger or DistributionLedger()
        self.max_retry_attempts = (
            max_retry_attempts or settings.DISTRIBUTION_MAX_RETRY_ATTEMPTS
        )
        self.retry_base_delay = (
            retry_base_delay
            if retry_base_delay is not None
            else settings.DISTRIBUTION_RETRY_BASE_DELAY_SECONDS
        )

    # Scheduling

    def scan_for_completed_hackathons(self) -> list[DistributionJob]:
        """Schedules a job for every completed, funded hackathon with
        finalized winners that has never had one.
        """
        hackathons = Hackathon.objects.filter(
            status=Hackathon.Status.COMPLETED,
            is_deposited=True,
            is_distributed=False,
            winners_finalized_date__isnull=False,
            distribution_jobs__isnull=True,
        )

        scheduled = []
        for hackathon in hackathons:
            job, created = self.schedule_distribution(hackathon)
            if created:
                scheduled.append(job)
        return scheduled

    def schedule_distribution(self, hackathon, winners=None, total_prize_pool=None):
        """Returns `(job, created)`. An existing open job is returned as
        already scheduled.
        """
        if winners is None:
            winners = list(hackathon.winners.order_by("rank"))
        if total_prize_pool is None:
            total_prize_pool = hackathon.prize_amount

        try:
            job = self.ledger.create_job(hackathon, winners, total_prize_pool)
            return job, True
        except DuplicateJob:
            logger.info(
                "Distribution for hackathon %s is already scheduled", hackathon.pk
            )
            return DistributionJob.objects.open().get(hackathon=hackathon), False

    # Processing

    def run_pending_jobs(self) -> dict:
        """One scheduler tick over every job that can make progress."""
        job_ids = set(DistributionJob.objects.open().values_list("id", flat=True))
        # FAILED jobs whose records all completed late
        job_ids.update(
            DistributionJob.objects.filter(status=DistributionJob.Status.FAILED)
            .exclude(
                records__status__in=[
                    DistributionRecord.Status.PENDING,
                    DistributionRecord.Status.FAILED,
                    DistributionRecord.Status.CANCELLED,
                ]
            )
            .values_list("id", flat=True)
        )

        outcomes = {}
        jobs = DistributionJob.objects.filter(id__in=job_ids).select_related(
            "hackathon"
        )
        for job in jobs.order_by("scheduled_at", "id"):
            try:
                outcomes[job.id] = self.run_job(job)
            except Exception as e:
                log_error(e, message=f"Distribution job {job.id} errored")
                logger.exception("Distribution job %s errored", job.id)
                outcomes[job.id] = JobOutcome.SKIPPED
        return outcomes

    def run_job(self, job) -> str:
        lock_key = locking.distribution_lock_name(job.hackathon_id)
        with locking.held(lock_key) as acquired:
            if not acquired:
                logger.info(
                    "Hackathon %s distribution is locked by another worker",
                    job.hackathon_id,
                )
                return JobOutcome.SKIPPED
            job.refresh_from_db()
            return self.process_job(job)

    def process_job(self, job) -> str:
        """Advances one job as far as it can go without waiting on the
        chain. Callers must hold the hackathon's distribution lock.
        """
        match job.status:
            case DistributionJob.Status.COMPLETED:
                return JobOutcome.COMPLETED
            case DistributionJob.Status.CANCELLED:
                return JobOutcome.CANCELLED
            case DistributionJob.Status.FAILED:
                return self._settle_job(job)

        if EmergencyStopState.is_active():
            logger.info("Emergency stop active, distribution job %s paused", job.id)
            return JobOutcome.PAUSED

        if job.status == DistributionJob.Status.SCHEDULED:
            self.ledger.start_job(job)

        pending_ids = list(
            job.records.filter(status=DistributionRecord.Status.PENDING)
            .order_by("position")
            .values_list("id", flat=True)
        )
        for record_id in pending_ids:
            if EmergencyStopState.is_active():
                logger.info(
                    "Emergency stop activated mid-pass, distribution job %s paused",
                    job.id,
                )
                return JobOutcome.PAUSED
            self._keep_lock(job)
            self._process_record(job, record_id)

        return self._settle_job(job)

    def _process_record(self, job, record_id):
        with transaction.atomic():
            record = DistributionRecord.objects.select_for_update().get(pk=record_id)
            if record.status != DistributionRecord.Status.PENDING:
                return

            latest = record.latest_submission()
            if latest is not None and latest.is_in_flight:
                # The monitor has to settle this attempt first
                return
            if record.next_attempt_at and record.next_attempt_at > timezone.now():
                return

            if record.attempt_count >= self.max_retry_attempts:
                self.ledger.mark_failed(
                    record,
                    reason=(
                        f"Retry attempts exhausted after {record.attempt_count} "
                        f"attempts: {record.last_error or 'no confirmation'}"
                    ),
                )
                return

            prepared = self._prepare(job, record, latest)

        # Committed before sending, so the hash survives a crash mid-broadcast
        if prepared is not None:
            self._broadcast(record, *prepared)

    def _prepare(self, job, record, latest):
        """Signs the next attempt for `record` and saves it as UNKNOWN.

        Returns `(submission, signed)`, or None when nothing should be sent.
        """
        overrides = {}
        if record.custom_gas_price:
            overrides["gas_price"] = int(record.custom_gas_price)
        if record.custom_gas_limit:
            overrides["gas_limit"] = record.custom_gas_limit

        if (
            latest is not None
            and latest.status == DistributionSubmission.Status.STUCK
            and latest.nonce is not None
        ):
            try:
                nonce = self._replacement_nonce(record, latest)
            except ChainReadError as e:
                logger.warning(
                    "Cannot check the nonce of stuck record %s, retrying later: %s",
                    record.id,
                    e.message,
                )
                return None
            except StuckAttemptMined:
                logger.info(
                    "Stuck attempt for record %s was mined, waiting for the monitor",
                    record.id,
                )
                return None

            if nonce is not None:
                # Same nonce, so at most one of the two transactions can land
                overrides["nonce"] = nonce
                gas_price = (
                    overrides.get("gas_price") or self.gateway.estimate_gas_price()
                )
                if latest.gas_price:
                    gas_price = max(
                        gas_price, replacement_gas_price(latest.gas_price)
                    )
                overrides["gas_price"] = gas_price

        contract_id = int(job.hackathon.contract_id)
        recipients = [record.recipient_address]
        amounts = [int(record.amount)]
        if "gas_limit" not in overrides:
            overrides["gas_limit"] = self.gateway.estimate_gas(
                recipients, amounts, contract_id
            )

        try:
            signed = self.gateway.sign_distribution(
                contract_id, recipients, amounts, overrides
            )
        except WalletNotConfiguredError as e:
            logger.warning(
                "Cannot submit distribution record %s: %s", record.id, e.message
            )
            return None
        except InvalidArgument as e:
            self.ledger.mark_failed(record, reason=e.message)
            return None
        except ChainWriteError as e:
            # Nothing was signed, so nothing can land
            self._count_retry(job, record)
            self.ledger.record_rejected_attempt(
                record,
                error=str(e.trigger or e.message),
                next_attempt_at=next_attempt_time(
                    record.attempt_count + 1, self.retry_base_delay
                ),
                nonce=e.nonce,
            )
            logger.warning(
                "Submission for record %s rejected: %s", record.id, e.trigger
            )
            return None

        self._count_retry(job, record)
        submission = self.ledger.record_submission(
            record,
            signed.tx_hash,
            nonce=signed.nonce,
            gas_price=signed.gas_price,
            gas_limit=signed.gas_limit,
            ambiguous=True,
        )
        return submission, signed

    def _broadcast(self, record, submission, signed):
        try:
            self.gateway.broadcast(signed)
        except ChainWriteError as e:
            # The node may have received it; the monitor decides
            self.ledger.record_broadcast_failure(
                submission, str(e.trigger or e.message)
            )
            logger.warning(
                "Broadcast of %s for record %s had an unknown outcome: %s",
                signed.tx_hash,
                record.id,
                e.trigger,
            )
            return
        self.ledger.mark_submission_broadcast(submission)

    def _replacement_nonce(self, record, stuck):
        """Returns the stuck attempt's nonce while a replacement can still
        take its place, or None once another transaction used that nonce.

        Raises `StuckAttemptMined` when one of the record's own attempts
        with that nonce was mined after all.
        """
        mined_nonce = self.gateway.get_mined_nonce()
        if stuck.nonce >= mined_nonce:
            return stuck.nonce

        same_nonce = list(
            record.submissions.filter(
                status__in=DistributionSubmission.OPEN_STATUSES,
                nonce=stuck.nonce,
                tx_hash__isnull=False,
            )
        )
        for submission in same_nonce:
            if not self.gateway.get_transaction_receipt(submission.tx_hash).is_pending:
                raise StuckAttemptMined(submission.tx_hash)

        for submission in same_nonce:
            self.ledger.mark_submission_dropped(submission, mined_nonce)
        logger.warning(
            "Nonce %s of record %s was used by another transaction, "
            "resubmitting with a fresh nonce",
            stuck.nonce,
            record.id,
        )
        return None

    def _count_retry(self, job, record):
        if record.attempt_count > 0:
            self.ledger.increment_retry_count(job)

    def _keep_lock(self, job):
        locking.extend(locking.distribution_lock_name(job.hackathon_id))

    def _settle_job(self, job) -> str:
        statuses = set(job.records.values_list("status", flat=True))

        if statuses == {DistributionRecord.Status.COMPLETED}:
            self.ledger.complete_job(job)
            logger.info("Distribution job %s completed", job.id)
            return JobOutcome.COMPLETED

        if job.status == DistributionJob.Status.FAILED:
            return JobOutcome.FAILED

        if (
            DistributionRecord.Status.PENDING not in statuses
            and DistributionRecord.Status.FAILED in statuses
        ):
            failed = (
                job.records.filter(status=DistributionRecord.Status.FAILED)
                .order_by("position")
                .values_list("position", "last_error")
            )
            reason = "; ".join(f"#{position}: {error}" for position, error in failed)
            self.ledger.fail_job(job, reason)
            logger.error("Distribution job %s failed: %s", job.id, reason)
            return JobOutcome.FAILED

        return JobOutcome.PROCESSING

    # Admin operations

    def force_retry(self, job, custom_gas_price=None, custom_gas_limit=None) -> list:
        """Resets the FAILED and stuck records of `job` with the admin's gas
        parameters and returns their ids. Other jobs are not touched.
        """
        with transaction.atomic():
            job = DistributionJob.objects.select_for_update().get(pk=job.pk)
            if job.status not in (
                DistributionJob.Status.FAILED,
                DistributionJob.Status.PROCESSING,
            ):
                raise InvalidTransition(
                    "DistributionJob",
                    job.id,
                    job.status,
                    DistributionJob.Status.PROCESSING,
                )

            targets = [
                record
                for record in job.records.filter(
                    status__in=[
                        DistributionRecord.Status.PENDING,
                        DistributionRecord.Status.FAILED,
                    ]
                )
                if record.status == DistributionRecord.Status.FAILED
                or self._is_stuck(record)
            ]
            if not targets:
                raise OperationRejected(
                    f"Distribution job {job.id} has no failed or stuck records"
                )

            for record in targets:
                self.ledger.reset_for_retry(
                    record,
                    custom_gas_price=custom_gas_price,
                    custom_gas_limit=custom_gas_limit,
                )
            if job.status == DistributionJob.Status.FAILED:
                self.ledger.reopen_job(job)

        logger.info(
            "Force retry of job %s for records %s",
            job.id,
            [record.id for record in targets],
        )
        return [record.id for record in targets]

    def cancel(self, job, reason, refund=False) -> int:
        return self.ledger.cancel_job(job, reason, refund=refund)

    def _is_stuck(self, record):
        latest = record.latest_submission()
        return (
            latest is not None and latest.status == DistributionSubmission.Status.STUCK
        )
