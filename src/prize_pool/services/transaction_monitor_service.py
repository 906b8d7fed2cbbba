import logging
from dataclasses import dataclass, field
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from ethereum.exceptions import ChainReadError
from ethereum.lib import ChainGateway, ReceiptStatus
from prize_pool.exceptions import InvalidTransition
from prize_pool.models import DistributionRecord, DistributionSubmission
from prize_pool.services.ledger_service import DistributionLedger
from prize_pool.services.retry_policy import next_attempt_time
from utils.sentry import log_info

logger = logging.getLogger(__name__)

STATS_SAMPLE_SIZE = 500


@dataclass
class MonitorReport:
    checked: int = 0
    confirmed: int = 0
    reverted: int = 0
    stuck: int = 0
    errors: int = 0
    late_confirmations: list = field(default_factory=list)


class TransactionMonitor:
    """
    Polls receipts for every open submission and moves the ledger to match
    the chain. The monitor only observes: stuck and reverted attempts are
    left for the scheduler to retry.
    """

    def __init__(
        self,
        gateway: ChainGateway | None = None,
        ledger: DistributionLedger | None = None,
        confirmation_blocks: int | None = None,
        timeout_seconds: int | None = None,
    ):
        self.gateway = gateway or ChainGateway()
        self.ledger = ledger or DistributionLedger()
        self.confirmation_blocks = (
            confirmation_blocks or settings.DISTRIBUTION_CONFIRMATION_BLOCKS
        )
        self.timeout_seconds = (
            timeout_seconds or settings.DISTRIBUTION_TRANSACTION_TIMEOUT_SECONDS
        )

    def poll(self) -> MonitorReport:
        report = MonitorReport()

        # Submissions are polled whatever their record's status so that a
        # transfer landing after cancel or failure is still noticed.
        submissions = (
            DistributionSubmission.objects.filter(
                status__in=DistributionSubmission.OPEN_STATUSES,
                tx_hash__isnull=False,
            )
            .select_related("record")
            .order_by("submitted_at", "id")
        )

        for submission in submissions:
            report.checked += 1
            try:
                receipt = self.gateway.get_transaction_receipt(submission.tx_hash)
            except ChainReadError as e:
                report.errors += 1
                logger.warning(
                    "Could not fetch receipt for %s: %s", submission.tx_hash, e.message
                )
                continue

            try:
                self._apply_receipt(submission, receipt, report)
            except InvalidTransition as e:
                report.errors += 1
                logger.error(
                    "Receipt for %s conflicts with ledger: %s",
                    submission.tx_hash,
                    e.message,
                )

        if report.checked:
            logger.info(
                "Monitored %s submissions: %s confirmed, %s reverted, %s stuck, "
                "%s errors",
                report.checked,
                report.confirmed,
                report.reverted,
                report.stuck,
                report.errors,
            )
        return report

    def _apply_receipt(self, submission, receipt, report):
        match receipt.status:
            case ReceiptStatus.CONFIRMED:
                if receipt.confirmations < self.confirmation_blocks:
                    return
                self._confirm(submission, receipt, report)
            case ReceiptStatus.REVERTED:
                record = submission.record
                self.ledger.mark_submission_reverted(
                    submission,
                    receipt,
                    retry_at=next_attempt_time(record.attempt_count),
                )
                report.reverted += 1
                logger.warning(
                    "Distribution transaction %s reverted (record %s)",
                    submission.tx_hash,
                    record.id,
                )
            case ReceiptStatus.PENDING:
                if submission.status == DistributionSubmission.Status.STUCK:
                    return
                deadline = submission.submitted_at + timedelta(
                    seconds=self.timeout_seconds
                )
                if timezone.now() >= deadline:
                    self.ledger.mark_submission_stuck(submission)
                    report.stuck += 1
                    logger.warning(
                        "Distribution transaction %s stuck for more than %ss",
                        submission.tx_hash,
                        self.timeout_seconds,
                    )

    def _confirm(self, submission, receipt, report):
        record = DistributionRecord.objects.get(pk=submission.record_id)

        if record.is_terminal:
            # Funds moved for a record the ledger already closed
            self.ledger.mark_submission_confirmed(submission, receipt)
            observation = {
                "record_id": record.id,
                "job_id": record.job_id,
                "hackathon_id": record.hackathon_id,
                "tx_hash": submission.tx_hash,
                "record_status": record.status,
            }
            report.late_confirmations.append(observation)
            logger.critical(
                "Transaction %s confirmed for %s distribution record %s",
                submission.tx_hash,
                record.status,
                record.id,
            )
            log_info("Late distribution confirmation", extra=observation)
            return

        self.ledger.mark_confirmed(record, submission, receipt)
        report.confirmed += 1

    def get_monitoring_stats(self) -> dict:
        submissions = DistributionSubmission.objects.exclude(
            status__in=[
                DistributionSubmission.Status.REJECTED,
                DistributionSubmission.Status.DROPPED,
            ]
        )
        pending_count = submissions.filter(
            status__in=DistributionSubmission.OPEN_STATUSES
        ).count()
        confirmed_count = submissions.filter(
            status=DistributionSubmission.Status.CONFIRMED
        ).count()
        reverted_count = submissions.filter(
            status=DistributionSubmission.Status.REVERTED
        ).count()
        finished = confirmed_count + reverted_count
        success_rate = confirmed_count / finished * 100 if finished else 100.0

        recent = submissions.filter(
            status=DistributionSubmission.Status.CONFIRMED,
            confirmed_at__isnull=False,
        ).order_by("-confirmed_at")[:STATS_SAMPLE_SIZE]
        durations = [
            (submission.confirmed_at - submission.submitted_at).total_seconds()
            for submission in recent
        ]
        average_confirmation_seconds = (
            sum(durations) / len(durations) if durations else None
        )

        return {
            "pending_count": pending_count,
            "stuck_count": submissions.filter(
                status=DistributionSubmission.Status.STUCK
            ).count(),
            "total_count": submissions.count(),
            "confirmed_count": confirmed_count,
            "reverted_count": reverted_count,
            "success_rate": round(success_rate, 2),
            "average_confirmation_seconds": average_confirmation_seconds,
        }
