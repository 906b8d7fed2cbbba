import logging

from django.db import IntegrityError, transaction
from django.utils import timezone
from web3 import Web3

from hackathon.models import Hackathon
from prize_pool.exceptions import DuplicateJob, InvalidTransition, InvalidWinners
from prize_pool.models import (
    DistributionJob,
    DistributionRecord,
    DistributionSubmission,
)
from prize_pool.related_models.constants import BASIS_POINTS

logger = logging.getLogger(__name__)


def _winner_fields(winner):
    if isinstance(winner, dict):
        return winner["rank"], winner["wallet_address"], winner["prize_amount"]
    return winner.rank, winner.wallet_address, winner.prize_amount


class DistributionLedger:
    """
    Durable bookkeeping for distribution jobs, their records and every
    broadcast attempt. Each state change locks the row it touches and runs
    in its own transaction (nested in the caller's, if any).
    """

    # Jobs

    def create_job(self, hackathon, winners, total_prize_pool) -> DistributionJob:
        """Creates a SCHEDULED job with one PENDING record per winner.

        Raises `DuplicateJob` if the hackathon already has an open job.
        """
        entries = self._validate_winners(winners, total_prize_pool)
        total_prize_pool = int(total_prize_pool)

        try:
            with transaction.atomic():
                # Serializes concurrent schedulers on the hackathon row
                Hackathon.objects.select_for_update().get(pk=hackathon.pk)
                if DistributionJob.objects.open().for_hackathon(hackathon.pk).exists():
                    raise DuplicateJob(hackathon.pk)

                job = DistributionJob.objects.create(
                    hackathon=hackathon,
                    total_prize_pool=total_prize_pool,
                )
                DistributionRecord.objects.bulk_create(
                    [
                        DistributionRecord(
                            job=job,
                            hackathon=hackathon,
                            recipient_address=address,
                            position=rank,
                            amount=amount,
                            percentage=(
                                amount * BASIS_POINTS // total_prize_pool
                                if total_prize_pool
                                else 0
                            ),
                        )
                        for rank, address, amount in entries
                    ]
                )
        except IntegrityError as e:
            raise DuplicateJob(hackathon.pk) from e

        logger.info(
            "Scheduled distribution job %s for hackathon %s (%s recipients)",
            job.id,
            hackathon.pk,
            len(entries),
        )
        return job

    def start_job(self, job) -> DistributionJob:
        return self._transition_job(job, DistributionJob.Status.PROCESSING)

    def complete_job(self, job) -> DistributionJob:
        with transaction.atomic():
            self._transition_job(
                job,
                DistributionJob.Status.COMPLETED,
                completed_date=timezone.now(),
                last_error="",
            )
            last_record = (
                job.records.filter(status=DistributionRecord.Status.COMPLETED)
                .order_by("-executed_at")
                .first()
            )
            hackathon = Hackathon.objects.select_for_update().get(pk=job.hackathon_id)
            hackathon.is_distributed = True
            hackathon.distribution_tx_hash = (
                last_record.tx_hash if last_record and last_record.tx_hash else ""
            )
            hackathon.save(
                update_fields=["is_distributed", "distribution_tx_hash", "updated_date"]
            )
        return job

    def fail_job(self, job, reason) -> DistributionJob:
        return self._transition_job(
            job, DistributionJob.Status.FAILED, last_error=reason
        )

    def reopen_job(self, job) -> DistributionJob:
        return self._transition_job(
            job, DistributionJob.Status.PROCESSING, last_error=""
        )

    def cancel_job(self, job, reason, refund=False) -> int:
        """Cancels the job and its unconfirmed records. Returns the number
        of records cancelled. COMPLETED records are left untouched.
        """
        with transaction.atomic():
            self._transition_job(
                job,
                DistributionJob.Status.CANCELLED,
                last_error=reason,
                refund_requested=refund,
            )
            cancelled = self.cancel_open_records(job, reason)
            if refund:
                Hackathon.objects.filter(pk=job.hackathon_id).update(
                    refund_required=True, updated_date=timezone.now()
                )
        logger.info(
            "Cancelled distribution job %s (%s records, refund=%s)",
            job.id,
            cancelled,
            refund,
        )
        return cancelled

    def increment_retry_count(self, job) -> DistributionJob:
        with transaction.atomic():
            locked = DistributionJob.objects.select_for_update().get(pk=job.pk)
            locked.retry_count += 1
            locked.save(update_fields=["retry_count", "updated_date"])
        job.retry_count = locked.retry_count
        return job

    # Records

    def record_submission(
        self,
        record,
        tx_hash,
        nonce=None,
        gas_price=None,
        gas_limit=None,
        ambiguous=False,
        error="",
    ) -> DistributionSubmission:
        """Appends a broadcast attempt. The record stays PENDING and points
        at the new hash; earlier hashes stay in the submission history.

        `ambiguous` saves a signed attempt as UNKNOWN, before it is broadcast
        or after its broadcast raised.
        """
        with transaction.atomic():
            locked = self._lock_record(record)
            if locked.status != DistributionRecord.Status.PENDING:
                raise InvalidTransition(
                    "DistributionRecord",
                    locked.id,
                    locked.status,
                    DistributionRecord.Status.PENDING,
                )

            locked.attempt_count += 1
            submission = DistributionSubmission.objects.create(
                record=locked,
                attempt=locked.attempt_count,
                tx_hash=tx_hash,
                nonce=nonce,
                gas_price=gas_price,
                gas_limit=gas_limit,
                status=(
                    DistributionSubmission.Status.UNKNOWN
                    if ambiguous
                    else DistributionSubmission.Status.SUBMITTED
                ),
                error=error,
            )
            locked.tx_hash = tx_hash
            locked.next_attempt_at = None
            locked.last_error = error
            locked.save(
                update_fields=[
                    "attempt_count",
                    "tx_hash",
                    "next_attempt_at",
                    "last_error",
                    "updated_date",
                ]
            )

        self._sync(record, locked)
        return submission

    def record_rejected_attempt(
        self, record, error, next_attempt_at=None, nonce=None
    ) -> DistributionSubmission:
        """Counts an attempt that failed before anything was signed."""
        with transaction.atomic():
            locked = self._lock_record(record)
            if locked.status != DistributionRecord.Status.PENDING:
                raise InvalidTransition(
                    "DistributionRecord",
                    locked.id,
                    locked.status,
                    DistributionRecord.Status.PENDING,
                )

            locked.attempt_count += 1
            submission = DistributionSubmission.objects.create(
                record=locked,
                attempt=locked.attempt_count,
                nonce=nonce,
                status=DistributionSubmission.Status.REJECTED,
                error=error,
            )
            locked.next_attempt_at = next_attempt_at
            locked.last_error = error
            locked.save(
                update_fields=[
                    "attempt_count",
                    "next_attempt_at",
                    "last_error",
                    "updated_date",
                ]
            )

        self._sync(record, locked)
        return submission

    def mark_confirmed(self, record, submission=None, receipt=None):
        """Completes the record. A FAILED record may still complete when an
        earlier attempt lands late.
        """
        with transaction.atomic():
            locked = self._lock_record(record)
            if locked.status in DistributionRecord.TERMINAL_STATUSES:
                raise InvalidTransition(
                    "DistributionRecord",
                    locked.id,
                    locked.status,
                    DistributionRecord.Status.COMPLETED,
                )

            if submission is not None:
                self.mark_submission_confirmed(submission, receipt)
                locked.tx_hash = submission.tx_hash
                self._supersede_siblings(locked, submission)

            locked.status = DistributionRecord.Status.COMPLETED
            locked.executed_at = timezone.now()
            locked.next_attempt_at = None
            locked.last_error = ""
            locked.save(
                update_fields=[
                    "status",
                    "tx_hash",
                    "executed_at",
                    "next_attempt_at",
                    "last_error",
                    "updated_date",
                ]
            )

        self._sync(record, locked)
        return record

    def mark_failed(self, record, reason):
        with transaction.atomic():
            locked = self._lock_record(record)
            if locked.status in DistributionRecord.TERMINAL_STATUSES:
                raise InvalidTransition(
                    "DistributionRecord",
                    locked.id,
                    locked.status,
                    DistributionRecord.Status.FAILED,
                )

            locked.status = DistributionRecord.Status.FAILED
            locked.last_error = reason
            locked.next_attempt_at = None
            locked.save(
                update_fields=["status", "last_error", "next_attempt_at", "updated_date"]
            )

        logger.warning(
            "Distribution record %s (#%s of job %s) failed: %s",
            locked.id,
            locked.position,
            locked.job_id,
            reason,
        )
        self._sync(record, locked)
        return record

    def reset_for_retry(self, record, custom_gas_price=None, custom_gas_limit=None):
        """Gives a FAILED or stuck PENDING record a fresh retry budget and
        the admin's gas parameters.
        """
        with transaction.atomic():
            locked = self._lock_record(record)
            if locked.status in DistributionRecord.TERMINAL_STATUSES:
                raise InvalidTransition(
                    "DistributionRecord",
                    locked.id,
                    locked.status,
                    DistributionRecord.Status.PENDING,
                )

            locked.status = DistributionRecord.Status.PENDING
            locked.attempt_count = 0
            locked.next_attempt_at = None
            locked.custom_gas_price = custom_gas_price
            locked.custom_gas_limit = custom_gas_limit
            locked.save(
                update_fields=[
                    "status",
                    "attempt_count",
                    "next_attempt_at",
                    "custom_gas_price",
                    "custom_gas_limit",
                    "updated_date",
                ]
            )

        self._sync(record, locked)
        return record

    def cancel_open_records(self, job, reason) -> int:
        with transaction.atomic():
            record_ids = list(
                DistributionRecord.objects.select_for_update()
                .filter(job=job, status__in=DistributionRecord.CANCELLABLE_STATUSES)
                .values_list("id", flat=True)
            )
            DistributionRecord.objects.filter(id__in=record_ids).update(
                status=DistributionRecord.Status.CANCELLED,
                last_error=reason,
                next_attempt_at=None,
                updated_date=timezone.now(),
            )
        return len(record_ids)

    # Submissions

    def mark_submission_confirmed(self, submission, receipt=None):
        fields = {
            "status": DistributionSubmission.Status.CONFIRMED,
            "confirmed_at": timezone.now(),
        }
        if receipt is not None:
            fields.update(
                block_number=receipt.block_number,
                confirmations=receipt.confirmations,
                gas_used=receipt.gas_used,
            )
        return self._update_submission(submission, **fields)

    def mark_submission_reverted(self, submission, receipt=None, retry_at=None):
        fields = {"status": DistributionSubmission.Status.REVERTED}
        if receipt is not None:
            fields.update(
                block_number=receipt.block_number,
                confirmations=receipt.confirmations,
                gas_used=receipt.gas_used,
            )
        with transaction.atomic():
            self._update_submission(submission, **fields)
            DistributionRecord.objects.filter(
                pk=submission.record_id, status=DistributionRecord.Status.PENDING
            ).update(
                next_attempt_at=retry_at,
                last_error=f"Transaction {submission.tx_hash} reverted",
                updated_date=timezone.now(),
            )
        return submission

    def mark_submission_stuck(self, submission):
        return self._update_submission(
            submission, status=DistributionSubmission.Status.STUCK
        )

    def mark_submission_superseded(self, submission):
        return self._update_submission(
            submission, status=DistributionSubmission.Status.SUPERSEDED
        )

    def mark_submission_broadcast(self, submission):
        """The node accepted a signed attempt saved as UNKNOWN."""
        return self._update_submission(
            submission,
            status=DistributionSubmission.Status.SUBMITTED,
            submitted_at=timezone.now(),
        )

    def record_broadcast_failure(self, submission, error):
        """Keeps the attempt UNKNOWN, since the node may still have it."""
        with transaction.atomic():
            self._update_submission(submission, error=error)
            DistributionRecord.objects.filter(
                pk=submission.record_id, status=DistributionRecord.Status.PENDING
            ).update(last_error=error, updated_date=timezone.now())
        return submission

    def mark_submission_dropped(self, submission, mined_nonce):
        return self._update_submission(
            submission,
            status=DistributionSubmission.Status.DROPPED,
            error=(
                f"Nonce {submission.nonce} was used by another transaction "
                f"(account nonce {mined_nonce})"
            ),
        )

    # Helpers

    def _validate_winners(self, winners, total_prize_pool):
        entries = []
        for winner in winners:
            rank, address, amount = _winner_fields(winner)
            try:
                address = Web3.to_checksum_address(address)
            except (TypeError, ValueError) as e:
                raise InvalidWinners(f"Invalid wallet address {address!r}") from e
            if int(amount) != amount or amount < 0:
                raise InvalidWinners(f"Invalid prize amount {amount} for rank {rank}")
            entries.append((int(rank), address, int(amount)))

        if not entries:
            raise InvalidWinners("At least one winner is required")

        entries.sort()
        ranks = [rank for rank, _, _ in entries]
        if ranks != list(range(1, len(entries) + 1)):
            raise InvalidWinners(
                f"Winner ranks must be unique and contiguous from 1, got {ranks}"
            )

        total = sum(amount for _, _, amount in entries)
        if total > int(total_prize_pool):
            raise InvalidWinners(
                f"Prize amounts ({total}) exceed the prize pool ({total_prize_pool})"
            )
        return entries

    def _transition_job(self, job, to_status, **fields):
        with transaction.atomic():
            locked = DistributionJob.objects.select_for_update().get(pk=job.pk)
            if not locked.can_transition_to(to_status):
                raise InvalidTransition(
                    "DistributionJob", locked.id, locked.status, to_status
                )
            locked.status = to_status
            for name, value in fields.items():
                setattr(locked, name, value)
            locked.save(update_fields=["status", "updated_date", *fields.keys()])

        job.status = locked.status
        job.updated_date = locked.updated_date
        for name in fields:
            setattr(job, name, getattr(locked, name))
        return job

    def _lock_record(self, record):
        return DistributionRecord.objects.select_for_update().get(pk=record.pk)

    def _sync(self, record, locked):
        if record is locked:
            return
        for field in (
            "status",
            "tx_hash",
            "executed_at",
            "attempt_count",
            "next_attempt_at",
            "custom_gas_price",
            "custom_gas_limit",
            "last_error",
            "updated_date",
        ):
            setattr(record, field, getattr(locked, field))

    def _update_submission(self, submission, **fields):
        with transaction.atomic():
            locked = DistributionSubmission.objects.select_for_update().get(
                pk=submission.pk
            )
            for name, value in fields.items():
                setattr(locked, name, value)
            locked.save(update_fields=[*fields.keys(), "updated_date"])

        for name in fields:
            setattr(submission, name, getattr(locked, name))
        return submission

    def _supersede_siblings(self, record, confirmed_submission):
        siblings = record.submissions.filter(
            status__in=DistributionSubmission.OPEN_STATUSES
        ).exclude(pk=confirmed_submission.pk)
        for sibling in siblings:
            self.mark_submission_superseded(sibling)
