import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta

from django.db import transaction
from django.utils import timezone

from ethereum.exceptions import ChainGatewayError
from hackathon.exceptions import Error as HackathonError
from hackathon.models import Hackathon
from prize_pool.exceptions import (
    AuditWriteError,
    DistributionError,
    EmergencyStopActive,
    JobNotFound,
    OperationRejected,
)
from prize_pool.models import (
    AuditEntry,
    DistributionJob,
    DistributionRecord,
    DistributionSubmission,
    EmergencyStopReason,
    EmergencyStopState,
)
from prize_pool.operations import (
    Cancellation,
    EmergencyOperation,
    ForceRetry,
    ManualDistribution,
    StatusOverride,
)
from prize_pool.services.audit_service import AuditService
from prize_pool.services.distribution_scheduler_service import DistributionScheduler
from prize_pool.services.transaction_monitor_service import TransactionMonitor
from prize_pool.tasks import process_distribution_job
from utils.sentry import log_error

logger = logging.getLogger(__name__)

# Expected failures of an admin operation; anything else is also reported
# to Sentry.
OPERATION_ERRORS = (DistributionError, HackathonError, ChainGatewayError)

FAILURE_MESSAGES = {
    AuditEntry.Action.EMERGENCY_STOP: "Failed to activate emergency stop",
    AuditEntry.Action.EMERGENCY_RESUME: "Failed to deactivate emergency stop",
    AuditEntry.Action.MANUAL_DISTRIBUTION: "Manual distribution trigger failed",
    AuditEntry.Action.CANCEL_DISTRIBUTION: "Distribution cancellation failed",
    AuditEntry.Action.STATUS_OVERRIDE: "Status override failed",
    AuditEntry.Action.FORCE_RETRY: "Force retry failed",
}

SUCCESS_RATE_ALERT_THRESHOLD = 90
FAILED_TRANSACTIONS_ALERT_THRESHOLD = 5
PENDING_TRANSACTIONS_ALERT_THRESHOLD = 10


@dataclass
class OperationResult:
    success: bool
    message: str
    data: dict | None = None
    error: str | None = None

    def to_dict(self):
        result = {
            "success": self.success,
            "message": self.message,
            "data": self.data,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class HealthAlert:
    severity: str
    message: str
    timestamp: datetime


@dataclass
class SystemHealthSnapshot:
    timestamp: datetime
    emergency_stop: bool = False
    active_distributions: int = 0
    pending_transactions: int = 0
    failed_transactions: int = 0
    stuck_transactions: int = 0
    queue_depth: int = 0
    transactions_being_monitored: int = 0
    success_rate: float = 100.0
    read_only: bool = False
    degraded: bool = False
    alerts: list = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


class EmergencyControlsService:
    """
    Global emergency stop, privileged manual operations and the system
    health view. Every mutating call writes exactly one audit entry in the
    same transaction as its change. A failed call is rolled back and audited
    as a failure.
    """

    def __init__(
        self,
        scheduler: DistributionScheduler | None = None,
        audit: AuditService | None = None,
        monitor: TransactionMonitor | None = None,
    ):
        self.scheduler = scheduler or DistributionScheduler()
        self.audit = audit or AuditService()
        self.monitor = monitor or TransactionMonitor(
            gateway=self.scheduler.gateway, ledger=self.scheduler.ledger
        )

    # Emergency stop

    def activate_emergency_stop(self, reason, admin_address) -> OperationResult:
        return self._audited(
            AuditEntry.Action.EMERGENCY_STOP,
            admin_address,
            reason,
            lambda hackathon: self._activate(reason, admin_address),
        )

    def deactivate_emergency_stop(self, admin_address) -> OperationResult:
        return self._audited(
            AuditEntry.Action.EMERGENCY_RESUME,
            admin_address,
            "Emergency stop deactivated",
            lambda hackathon: self._deactivate(admin_address),
        )

    def get_emergency_stop_status(self) -> OperationResult:
        state = EmergencyStopState.load()
        reasons = [
            {
                "admin_address": entry.admin_address,
                "reason": entry.reason,
                "timestamp": entry.created_date,
            }
            for entry in EmergencyStopReason.objects.all()
        ]
        return OperationResult(
            success=True,
            message=(
                "Emergency stop is active"
                if state.active
                else "Emergency stop is not active"
            ),
            data={
                "active": state.active,
                "activated_date": state.activated_date,
                "activated_by": state.activated_by,
                "deactivated_date": state.deactivated_date,
                "deactivated_by": state.deactivated_by,
                "reasons": reasons,
            },
        )

    def _activate(self, reason, admin_address):
        state = EmergencyStopState.load(for_update=True)
        already_active = state.active
        if not already_active:
            state.active = True
            state.activated_date = timezone.now()
            state.activated_by = admin_address
            state.save()
        EmergencyStopReason.objects.create(admin_address=admin_address, reason=reason)

        paused_jobs = DistributionJob.objects.open().count()
        logger.warning(
            "Emergency stop activated by %s: %s (%s open jobs paused)",
            admin_address,
            reason,
            paused_jobs,
        )
        return OperationResult(
            success=True,
            message=(
                "Emergency stop already active, reason recorded"
                if already_active
                else f"Emergency stop activated. {paused_jobs} open distribution "
                "jobs paused."
            ),
            data={
                "active": True,
                "already_active": already_active,
                "paused_jobs": paused_jobs,
                "reason_count": EmergencyStopReason.objects.count(),
            },
        )

    def _deactivate(self, admin_address):
        state = EmergencyStopState.load(for_update=True)
        was_active = state.active
        if was_active:
            state.active = False
            state.deactivated_date = timezone.now()
            state.deactivated_by = admin_address
            state.save()

        logger.warning("Emergency stop deactivated by %s", admin_address)
        return OperationResult(
            success=True,
            message=(
                "Emergency stop deactivated. Normal operations resumed."
                if was_active
                else "Emergency stop was not active"
            ),
            data={"active": False, "was_active": was_active},
        )

    # Admin operations

    def execute(self, operation: EmergencyOperation, admin_address) -> OperationResult:
        match operation:
            case ManualDistribution():
                return self._audited(
                    AuditEntry.Action.MANUAL_DISTRIBUTION,
                    admin_address,
                    operation.reason,
                    lambda hackathon: self._manual_distribution(operation, hackathon),
                    hackathon_id=operation.hackathon_id,
                    details=asdict(operation),
                )
            case StatusOverride():
                return self._audited(
                    AuditEntry.Action.STATUS_OVERRIDE,
                    admin_address,
                    operation.reason,
                    lambda hackathon: self._status_override(operation, hackathon),
                    hackathon_id=operation.hackathon_id,
                    details=asdict(operation),
                )
            case Cancellation():
                return self._audited(
                    AuditEntry.Action.CANCEL_DISTRIBUTION,
                    admin_address,
                    operation.reason,
                    lambda hackathon: self._cancellation(operation, hackathon),
                    hackathon_id=operation.hackathon_id,
                    details=asdict(operation),
                )
            case ForceRetry():
                return self._audited(
                    AuditEntry.Action.FORCE_RETRY,
                    admin_address,
                    operation.reason or "Force retry",
                    lambda hackathon: self._force_retry(operation, hackathon),
                    hackathon_id=operation.hackathon_id,
                    details=asdict(operation),
                )
            case _:
                raise TypeError(f"Unsupported emergency operation: {operation!r}")

    def manual_distribution_trigger(
        self, hackathon_id, reason, admin_address, bypass_checks=False
    ) -> OperationResult:
        return self.execute(
            ManualDistribution(hackathon_id, reason, bypass_checks), admin_address
        )

    def override_hackathon_status(
        self,
        hackathon_id,
        from_status,
        to_status,
        reason,
        admin_address,
        bypass_validation=False,
    ) -> OperationResult:
        return self.execute(
            StatusOverride(
                hackathon_id, from_status, to_status, reason, bypass_validation
            ),
            admin_address,
        )

    def cancel_distribution(
        self, hackathon_id, reason, admin_address, refund_prize_pool=False
    ) -> OperationResult:
        return self.execute(
            Cancellation(hackathon_id, reason, refund_prize_pool), admin_address
        )

    def force_retry_distribution(
        self,
        hackathon_id,
        admin_address,
        custom_gas_price=None,
        custom_gas_limit=None,
        reason="",
    ) -> OperationResult:
        return self.execute(
            ForceRetry(hackathon_id, custom_gas_price, custom_gas_limit, reason),
            admin_address,
        )

    def _manual_distribution(self, operation, hackathon):
        hackathon = self._require_hackathon(operation.hackathon_id, hackathon)
        if EmergencyStopState.is_active():
            raise EmergencyStopActive(
                "Emergency stop is active, manual distribution refused"
            )
        if not operation.bypass_checks:
            self._check_distributable(hackathon)

        job = DistributionJob.objects.open().for_hackathon(hackathon.pk).first()
        if job is None:
            self._check_no_prior_payouts(hackathon)
            if not hackathon.winners.exists():
                raise OperationRejected(
                    f"Hackathon {hackathon.pk} has no finalized winners"
                )
            job, _ = self.scheduler.schedule_distribution(hackathon)

        self._enqueue(hackathon.pk)
        return OperationResult(
            success=True,
            message=(
                f"Distribution for hackathon {hackathon.pk} accepted for processing"
            ),
            data={
                "hackathon_id": hackathon.pk,
                "job_id": job.id,
                "job_status": job.status,
            },
        )

    def _status_override(self, operation, hackathon):
        hackathon = self._require_hackathon(operation.hackathon_id, hackathon)
        locked = Hackathon.objects.select_for_update().get(pk=hackathon.pk)
        if locked.status != operation.from_status:
            raise OperationRejected(
                f"Hackathon {locked.pk} is {locked.status}, not "
                f"{operation.from_status}"
            )

        before = self._hackathon_state(locked)
        locked.transition_to(
            operation.to_status, bypass_validation=operation.bypass_validation
        )
        after = self._hackathon_state(locked)
        if operation.bypass_validation:
            logger.warning(
                "Hackathon %s status forced from %s to %s without validation",
                locked.pk,
                operation.from_status,
                operation.to_status,
            )
        return OperationResult(
            success=True,
            message=(
                f"Status successfully overridden from {operation.from_status} "
                f"to {operation.to_status}"
            ),
            data={
                "hackathon_id": locked.pk,
                "before": before,
                "after": after,
                "bypass_validation": operation.bypass_validation,
            },
        )

    def _cancellation(self, operation, hackathon):
        hackathon = self._require_hackathon(operation.hackathon_id, hackathon)
        job = (
            DistributionJob.objects.for_hackathon(hackathon.pk)
            .filter(
                status__in=[
                    DistributionJob.Status.SCHEDULED,
                    DistributionJob.Status.PROCESSING,
                    DistributionJob.Status.FAILED,
                ]
            )
            .order_by("-created_date", "-id")
            .first()
        )
        if job is None:
            raise JobNotFound(hackathon.pk)

        cancelled = self.scheduler.cancel(
            job, operation.reason, refund=operation.refund_prize_pool
        )
        completed = job.records.filter(
            status=DistributionRecord.Status.COMPLETED
        ).count()
        message = (
            f"Successfully cancelled distribution for hackathon {hackathon.pk}. "
            f"{cancelled} distributions cancelled."
        )
        if operation.refund_prize_pool:
            message += " Prize pool flagged for refund."
        return OperationResult(
            success=True,
            message=message,
            data={
                "hackathon_id": hackathon.pk,
                "job_id": job.id,
                "cancelled_records": cancelled,
                "completed_records": completed,
                "refund_required": operation.refund_prize_pool,
            },
        )

    def _force_retry(self, operation, hackathon):
        hackathon = self._require_hackathon(operation.hackathon_id, hackathon)
        if EmergencyStopState.is_active():
            raise EmergencyStopActive("Emergency stop is active, force retry refused")

        job = (
            DistributionJob.objects.for_hackathon(hackathon.pk)
            .filter(
                status__in=[
                    DistributionJob.Status.FAILED,
                    DistributionJob.Status.PROCESSING,
                ]
            )
            .order_by("-created_date", "-id")
            .first()
        )
        if job is None:
            raise JobNotFound(
                hackathon.pk,
                f"No failed or processing distribution for hackathon {hackathon.pk}",
            )

        record_ids = self.scheduler.force_retry(
            job,
            custom_gas_price=operation.custom_gas_price,
            custom_gas_limit=operation.custom_gas_limit,
        )
        self._enqueue(hackathon.pk)
        return OperationResult(
            success=True,
            message=f"Force retry for hackathon {hackathon.pk} accepted for processing",
            data={
                "hackathon_id": hackathon.pk,
                "job_id": job.id,
                "record_ids": record_ids,
                "custom_gas_price": operation.custom_gas_price,
                "custom_gas_limit": operation.custom_gas_limit,
            },
        )

    # Read views

    def get_distribution_jobs(self):
        return (
            DistributionJob.objects.filter(
                status__in=[
                    DistributionJob.Status.SCHEDULED,
                    DistributionJob.Status.PROCESSING,
                    DistributionJob.Status.FAILED,
                ]
            )
            .select_related("hackathon")
            .prefetch_related("records")
            .order_by("-created_date", "-id")
        )

    def get_audit_trail(self, hackathon_id=None, action=None):
        return self.audit.get_audit_trail(hackathon_id=hackathon_id, action=action)

    def get_system_health_status(self) -> SystemHealthSnapshot:
        """Never raises. Reads that fail leave their defaults in place, mark
        the snapshot degraded and add a critical alert.
        """
        now = timezone.now()
        snapshot = SystemHealthSnapshot(timestamp=now)

        def read(label, fn, default):
            try:
                return fn()
            except Exception as e:
                logger.exception("System health could not read %s", label)
                log_error(e, message=f"System health could not read {label}")
                snapshot.degraded = True
                snapshot.alerts.append(
                    HealthAlert("critical", f"Failed to read {label}", now)
                )
                return default

        snapshot.emergency_stop = read(
            "emergency stop state", EmergencyStopState.is_active, False
        )
        snapshot.active_distributions = read(
            "active distributions",
            lambda: DistributionJob.objects.open().count(),
            0,
        )
        snapshot.queue_depth = read(
            "distribution queue",
            lambda: DistributionJob.objects.filter(
                status=DistributionJob.Status.SCHEDULED
            ).count(),
            0,
        )
        snapshot.pending_transactions = read(
            "pending distributions",
            lambda: DistributionRecord.objects.filter(
                status=DistributionRecord.Status.PENDING
            ).count(),
            0,
        )
        snapshot.failed_transactions = read(
            "failed distributions",
            lambda: DistributionRecord.objects.filter(
                status=DistributionRecord.Status.FAILED,
                updated_date__gte=now - timedelta(hours=24),
            ).count(),
            0,
        )
        stats = read(
            "transaction monitoring stats", self.monitor.get_monitoring_stats, None
        )
        if stats is not None:
            snapshot.success_rate = stats["success_rate"]
            snapshot.transactions_being_monitored = stats["pending_count"]
            snapshot.stuck_transactions = stats["stuck_count"]
        snapshot.read_only = read(
            "chain gateway mode", lambda: self.scheduler.gateway.is_read_only, False
        )

        if snapshot.emergency_stop:
            snapshot.alerts.append(
                HealthAlert(
                    "critical",
                    "Emergency stop is active - all distributions halted",
                    now,
                )
            )
        if snapshot.success_rate < SUCCESS_RATE_ALERT_THRESHOLD:
            snapshot.alerts.append(
                HealthAlert(
                    "high", f"Low success rate: {snapshot.success_rate:.2f}%", now
                )
            )
        if snapshot.stuck_transactions:
            snapshot.alerts.append(
                HealthAlert(
                    "high",
                    f"{snapshot.stuck_transactions} stuck transactions need attention",
                    now,
                )
            )
        if snapshot.read_only:
            snapshot.alerts.append(
                HealthAlert(
                    "high",
                    "Chain gateway is read-only, no signing key configured",
                    now,
                )
            )
        if snapshot.failed_transactions > FAILED_TRANSACTIONS_ALERT_THRESHOLD:
            snapshot.alerts.append(
                HealthAlert(
                    "medium",
                    "High number of failed transactions in last 24h: "
                    f"{snapshot.failed_transactions}",
                    now,
                )
            )
        if snapshot.pending_transactions > PENDING_TRANSACTIONS_ALERT_THRESHOLD:
            snapshot.alerts.append(
                HealthAlert(
                    "medium",
                    "Large number of pending transactions: "
                    f"{snapshot.pending_transactions}",
                    now,
                )
            )
        return snapshot

    # Helpers

    def _audited(
        self,
        action,
        admin_address,
        reason,
        handler,
        hackathon_id=None,
        details=None,
    ) -> OperationResult:
        details = dict(details or {})
        hackathon = (
            Hackathon.objects.filter(pk=hackathon_id).first()
            if hackathon_id is not None
            else None
        )

        try:
            with transaction.atomic():
                result = handler(hackathon)
                self.audit.record(
                    action,
                    admin_address,
                    reason,
                    hackathon=hackathon,
                    success=True,
                    details={**details, **(result.data or {})},
                )
            return result
        except AuditWriteError as e:
            log_error(e, message=f"{action} rolled back, audit write failed")
            return OperationResult(
                success=False,
                message=FAILURE_MESSAGES[action],
                error="Audit log write failed, the operation was rolled back",
            )
        except OPERATION_ERRORS as e:
            error = getattr(e, "message", None) or str(e)
            logger.warning("%s: %s", FAILURE_MESSAGES[action], error)
        except Exception as e:
            log_error(e, message=FAILURE_MESSAGES[action])
            logger.exception(FAILURE_MESSAGES[action])
            error = str(e)

        failure = OperationResult(
            success=False, message=FAILURE_MESSAGES[action], error=error
        )
        try:
            self.audit.record(
                action,
                admin_address,
                reason,
                hackathon=hackathon,
                success=False,
                details={**details, "error": error},
            )
        except AuditWriteError as e:
            log_error(e, message=f"Could not audit failed {action}")
        return failure

    def _require_hackathon(self, hackathon_id, hackathon):
        if hackathon is None:
            raise OperationRejected(f"Hackathon {hackathon_id} not found")
        return hackathon

    def _check_distributable(self, hackathon):
        if hackathon.status != Hackathon.Status.COMPLETED:
            raise OperationRejected(
                f"Hackathon {hackathon.pk} is {hackathon.status}, not COMPLETED"
            )
        if not hackathon.is_deposited:
            raise OperationRejected(
                f"Hackathon {hackathon.pk} prize pool has not been deposited"
            )
        if hackathon.is_distributed:
            raise OperationRejected(
                f"Hackathon {hackathon.pk} prizes were already distributed"
            )
        prize_pool = self.scheduler.gateway.read_prize_pool(
            int(hackathon.contract_id)
        )
        if prize_pool.is_distributed:
            raise OperationRejected(
                f"Hackathon {hackathon.pk} prizes were already distributed on chain"
            )

        # The registry may not record winners; only a conflicting list blocks
        on_chain = [
            address.lower()
            for address in self.scheduler.gateway.read_winners(
                int(hackathon.contract_id)
            )
        ]
        local = [
            address.lower()
            for address in hackathon.winners.order_by("rank").values_list(
                "wallet_address", flat=True
            )
        ]
        if on_chain and on_chain != local[: len(on_chain)]:
            raise OperationRejected(
                f"Hackathon {hackathon.pk} winners do not match the on-chain registry"
            )

    def _check_no_prior_payouts(self, hackathon):
        jobs = DistributionJob.objects.for_hackathon(hackathon.pk)
        if jobs.filter(status=DistributionJob.Status.COMPLETED).exists():
            raise OperationRejected(
                f"Hackathon {hackathon.pk} prizes were already distributed"
            )
        if jobs.filter(status=DistributionJob.Status.FAILED).exists():
            raise OperationRejected(
                f"Hackathon {hackathon.pk} has a failed distribution, use force retry"
            )
        paid = DistributionRecord.objects.filter(
            hackathon_id=hackathon.pk, status=DistributionRecord.Status.COMPLETED
        ).exists()
        in_flight = DistributionSubmission.objects.filter(
            record__hackathon_id=hackathon.pk,
            status__in=DistributionSubmission.OPEN_STATUSES,
        ).exists()
        if paid or in_flight:
            raise OperationRejected(
                f"A cancelled distribution for hackathon {hackathon.pk} already "
                "paid or may still pay recipients"
            )

    def _enqueue(self, hackathon_id):
        transaction.on_commit(lambda: process_distribution_job.delay(hackathon_id))

    @staticmethod
    def _hackathon_state(hackathon):
        return {
            "status": hackathon.status,
            "is_deposited": hackathon.is_deposited,
            "is_distributed": hackathon.is_distributed,
            "refund_required": hackathon.refund_required,
        }
