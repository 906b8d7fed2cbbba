from unittest.mock import patch

from django.test import TestCase

from hackathon.models import Hackathon
from hackathon.tests.helpers import create_finalized_hackathon, create_hackathon
from prize_pool.exceptions import AuditWriteError
from prize_pool.models import (
    AuditEntry,
    DistributionJob,
    DistributionRecord,
    EmergencyStopReason,
    EmergencyStopState,
)
from prize_pool.operations import ManualDistribution
from prize_pool.services.emergency_controls_service import EmergencyControlsService
from prize_pool.tests.helpers import (
    FakeChainGateway,
    age_open_submissions,
    build_services,
    latest_hash,
)

ADMIN = "0x00000000000000000000000000000000000000A1"


class EmergencyControlsTestCase(TestCase):
    def setUp(self):
        self.gateway, self.ledger, self.scheduler, self.monitor = build_services(
            max_retry_attempts=1
        )
        self.service = EmergencyControlsService(
            scheduler=self.scheduler, monitor=self.monitor
        )
        patcher = patch(
            "prize_pool.services.emergency_controls_service.process_distribution_job"
        )
        self.mock_task = patcher.start()
        self.addCleanup(patcher.stop)

    def audit_entries(self, action=None):
        entries = AuditEntry.objects.all()
        if action:
            entries = entries.filter(action=action)
        return entries

    def failed_job(self):
        hackathon = create_finalized_hackathon(amounts=(50,))
        job, _ = self.scheduler.schedule_distribution(hackathon)
        self.scheduler.run_pending_jobs()
        age_open_submissions()
        self.monitor.poll()
        self.scheduler.run_pending_jobs()
        job.refresh_from_db()
        return hackathon, job


class EmergencyStopTests(EmergencyControlsTestCase):
    def test_activate(self):
        result = self.service.activate_emergency_stop("exploit suspected", ADMIN)

        state = EmergencyStopState.load()
        self.assertTrue(result.success)
        self.assertTrue(state.active)
        self.assertEqual(state.activated_by, ADMIN)
        entry = self.audit_entries(AuditEntry.Action.EMERGENCY_STOP).get()
        self.assertTrue(entry.success)
        self.assertEqual(entry.reason, "exploit suspected")

    def test_activate_twice_appends_reasons(self):
        self.service.activate_emergency_stop("exploit suspected", ADMIN)
        result = self.service.activate_emergency_stop("second report", ADMIN)

        self.assertTrue(result.success)
        self.assertTrue(result.data["already_active"])
        self.assertEqual(
            list(EmergencyStopReason.objects.values_list("reason", flat=True)),
            ["exploit suspected", "second report"],
        )
        self.assertEqual(self.audit_entries().count(), 2)

    def test_activate_reports_paused_jobs(self):
        self.scheduler.schedule_distribution(create_finalized_hackathon())

        result = self.service.activate_emergency_stop("exploit suspected", ADMIN)

        self.assertEqual(result.data["paused_jobs"], 1)
        self.assertEqual(
            DistributionJob.objects.get().status, DistributionJob.Status.SCHEDULED
        )

    def test_deactivate_keeps_reasons(self):
        self.service.activate_emergency_stop("exploit suspected", ADMIN)

        result = self.service.deactivate_emergency_stop(ADMIN)

        self.assertTrue(result.success)
        self.assertFalse(EmergencyStopState.is_active())
        self.assertEqual(EmergencyStopReason.objects.count(), 1)
        self.assertTrue(
            self.audit_entries(AuditEntry.Action.EMERGENCY_RESUME).exists()
        )

    def test_status(self):
        self.service.activate_emergency_stop("exploit suspected", ADMIN)

        result = self.service.get_emergency_stop_status()

        self.assertTrue(result.data["active"])
        self.assertEqual(result.data["reasons"][0]["admin_address"], ADMIN)
        self.assertEqual(result.data["reasons"][0]["reason"], "exploit suspected")

    def test_audit_failure_rolls_back(self):
        with patch.object(
            self.service.audit,
            "record",
            side_effect=AuditWriteError(Exception("database unavailable")),
        ):
            result = self.service.activate_emergency_stop("exploit suspected", ADMIN)

        self.assertFalse(result.success)
        self.assertIn("rolled back", result.error)
        self.assertFalse(EmergencyStopState.is_active())
        self.assertFalse(EmergencyStopReason.objects.exists())


class ManualDistributionTests(EmergencyControlsTestCase):
    def test_schedules_and_enqueues(self):
        hackathon = create_finalized_hackathon()

        with self.captureOnCommitCallbacks(execute=True):
            result = self.service.manual_distribution_trigger(
                hackathon.id, "scheduler missed it", ADMIN
            )

        self.assertTrue(result.success)
        self.assertIn("accepted for processing", result.message)
        job = DistributionJob.objects.get(hackathon=hackathon)
        self.assertEqual(result.data["job_id"], job.id)
        self.mock_task.delay.assert_called_once_with(hackathon.id)
        entry = self.audit_entries(AuditEntry.Action.MANUAL_DISTRIBUTION).get()
        self.assertEqual(entry.hackathon, hackathon)
        self.assertEqual(entry.details["job_id"], job.id)

    def test_reuses_open_job(self):
        hackathon = create_finalized_hackathon()
        job, _ = self.scheduler.schedule_distribution(hackathon)

        result = self.service.manual_distribution_trigger(hackathon.id, "nudge", ADMIN)

        self.assertTrue(result.success)
        self.assertEqual(result.data["job_id"], job.id)
        self.assertEqual(DistributionJob.objects.count(), 1)

    def test_refused_while_emergency_stop_active(self):
        hackathon = create_finalized_hackathon()
        self.service.activate_emergency_stop("exploit suspected", ADMIN)

        with self.captureOnCommitCallbacks(execute=True):
            result = self.service.manual_distribution_trigger(
                hackathon.id, "retry", ADMIN
            )

        self.assertFalse(result.success)
        self.assertFalse(DistributionJob.objects.exists())
        self.mock_task.delay.assert_not_called()
        entry = self.audit_entries(AuditEntry.Action.MANUAL_DISTRIBUTION).get()
        self.assertFalse(entry.success)

    def test_rejects_when_distributed_on_chain(self):
        hackathon = create_finalized_hackathon()
        self.gateway.prize_pool.is_distributed = True

        result = self.service.manual_distribution_trigger(hackathon.id, "retry", ADMIN)

        self.assertFalse(result.success)
        self.assertIn("on chain", result.error)
        self.assertFalse(DistributionJob.objects.exists())

    def test_rejects_winners_conflicting_with_registry(self):
        hackathon = create_finalized_hackathon()
        self.gateway.winners = [
            "0x00000000000000000000000000000000000000c2",
            "0x00000000000000000000000000000000000000c1",
        ]

        result = self.service.manual_distribution_trigger(hackathon.id, "retry", ADMIN)

        self.assertFalse(result.success)
        self.assertIn("do not match the on-chain registry", result.error)
        self.assertFalse(DistributionJob.objects.exists())

    def test_accepts_winners_matching_registry(self):
        hackathon = create_finalized_hackathon()
        self.gateway.winners = [
            "0x00000000000000000000000000000000000000C1",
            "0x00000000000000000000000000000000000000c2",
        ]

        result = self.service.manual_distribution_trigger(hackathon.id, "retry", ADMIN)

        self.assertTrue(result.success)
        self.assertTrue(DistributionJob.objects.filter(hackathon=hackathon).exists())

    def test_rejects_hackathon_still_voting(self):
        hackathon = create_finalized_hackathon()
        Hackathon.objects.filter(pk=hackathon.pk).update(
            status=Hackathon.Status.VOTING_CLOSED
        )

        result = self.service.manual_distribution_trigger(hackathon.id, "early", ADMIN)

        self.assertFalse(result.success)
        self.assertIn("not COMPLETED", result.error)

    def test_bypass_checks(self):
        hackathon = create_finalized_hackathon()
        Hackathon.objects.filter(pk=hackathon.pk).update(is_deposited=False)

        result = self.execute_bypass(hackathon)

        self.assertTrue(result.success)
        self.assertTrue(DistributionJob.objects.filter(hackathon=hackathon).exists())

    def execute_bypass(self, hackathon):
        return self.service.execute(
            ManualDistribution(hackathon.id, "deposit indexed late", True), ADMIN
        )

    def test_requires_winners_even_with_bypass(self):
        hackathon = create_hackathon()

        result = self.execute_bypass(hackathon)

        self.assertFalse(result.success)
        self.assertIn("no finalized winners", result.error)

    def test_refuses_after_failed_job(self):
        hackathon, _ = self.failed_job()

        result = self.service.manual_distribution_trigger(hackathon.id, "again", ADMIN)

        self.assertFalse(result.success)
        self.assertIn("force retry", result.error)

    def test_unknown_hackathon(self):
        result = self.service.manual_distribution_trigger(9999, "typo", ADMIN)

        self.assertFalse(result.success)
        self.assertIn("not found", result.error)
        self.assertIsNone(self.audit_entries().get().hackathon)

    def test_unknown_operation(self):
        with self.assertRaises(TypeError):
            self.service.execute(object(), ADMIN)


class CancelDistributionTests(EmergencyControlsTestCase):
    def test_cancels_unpaid_records_with_one_audit_entry(self):
        hackathon = create_finalized_hackathon(amounts=(50, 30, 20))
        job, _ = self.scheduler.schedule_distribution(hackathon)
        self.scheduler.run_pending_jobs()
        self.gateway.confirm(latest_hash(job.records.get(position=1)))
        self.monitor.poll()

        result = self.service.cancel_distribution(
            hackathon.id, "fraud report", ADMIN, refund_prize_pool=True
        )

        job.refresh_from_db()
        hackathon.refresh_from_db()
        self.assertTrue(result.success)
        self.assertEqual(result.data["cancelled_records"], 2)
        self.assertEqual(result.data["completed_records"], 1)
        self.assertEqual(job.status, DistributionJob.Status.CANCELLED)
        self.assertTrue(hackathon.refund_required)
        self.assertEqual(
            dict(job.records.values_list("position", "status")),
            {
                1: DistributionRecord.Status.COMPLETED,
                2: DistributionRecord.Status.CANCELLED,
                3: DistributionRecord.Status.CANCELLED,
            },
        )
        self.assertEqual(self.audit_entries().count(), 1)
        entry = self.audit_entries(AuditEntry.Action.CANCEL_DISTRIBUTION).get()
        self.assertTrue(entry.success)
        self.assertTrue(entry.details["refund_prize_pool"])

    def test_cancel_allowed_during_emergency_stop(self):
        hackathon = create_finalized_hackathon()
        self.scheduler.schedule_distribution(hackathon)
        self.service.activate_emergency_stop("exploit suspected", ADMIN)

        result = self.service.cancel_distribution(hackathon.id, "exploit", ADMIN)

        self.assertTrue(result.success)

    def test_no_job(self):
        hackathon = create_finalized_hackathon()

        result = self.service.cancel_distribution(hackathon.id, "nothing", ADMIN)

        self.assertFalse(result.success)
        self.assertFalse(self.audit_entries().get().success)


class StatusOverrideTests(EmergencyControlsTestCase):
    def test_override_records_before_and_after(self):
        hackathon = create_hackathon(status=Hackathon.Status.VOTING_CLOSED)

        result = self.service.override_hackathon_status(
            hackathon.id,
            Hackathon.Status.VOTING_CLOSED,
            Hackathon.Status.COMPLETED,
            "judges done",
            ADMIN,
        )

        hackathon.refresh_from_db()
        self.assertTrue(result.success)
        self.assertEqual(hackathon.status, Hackathon.Status.COMPLETED)
        details = self.audit_entries(AuditEntry.Action.STATUS_OVERRIDE).get().details
        self.assertEqual(details["before"]["status"], Hackathon.Status.VOTING_CLOSED)
        self.assertEqual(details["after"]["status"], Hackathon.Status.COMPLETED)

    def test_from_status_must_match(self):
        hackathon = create_hackathon(status=Hackathon.Status.VOTING_OPEN)

        result = self.service.override_hackathon_status(
            hackathon.id,
            Hackathon.Status.VOTING_CLOSED,
            Hackathon.Status.COMPLETED,
            "judges done",
            ADMIN,
        )

        hackathon.refresh_from_db()
        self.assertFalse(result.success)
        self.assertEqual(hackathon.status, Hackathon.Status.VOTING_OPEN)

    def test_invalid_transition_needs_bypass(self):
        hackathon = create_hackathon(status=Hackathon.Status.DRAFT)

        refused = self.service.override_hackathon_status(
            hackathon.id,
            Hackathon.Status.DRAFT,
            Hackathon.Status.COMPLETED,
            "migration",
            ADMIN,
        )
        forced = self.service.override_hackathon_status(
            hackathon.id,
            Hackathon.Status.DRAFT,
            Hackathon.Status.COMPLETED,
            "migration",
            ADMIN,
            bypass_validation=True,
        )

        hackathon.refresh_from_db()
        self.assertFalse(refused.success)
        self.assertTrue(forced.success)
        self.assertEqual(hackathon.status, Hackathon.Status.COMPLETED)
        self.assertEqual(self.audit_entries().filter(success=False).count(), 1)
        self.assertEqual(self.audit_entries().filter(success=True).count(), 1)


class ForceRetryTests(EmergencyControlsTestCase):
    def test_accepts_and_enqueues(self):
        hackathon, job = self.failed_job()

        with self.captureOnCommitCallbacks(execute=True):
            result = self.service.force_retry_distribution(
                hackathon.id, ADMIN, custom_gas_price=40_000_000_000
            )

        job.refresh_from_db()
        self.assertTrue(result.success)
        self.assertIn("accepted for processing", result.message)
        self.assertEqual(job.status, DistributionJob.Status.PROCESSING)
        self.mock_task.delay.assert_called_once_with(hackathon.id)
        entry = self.audit_entries(AuditEntry.Action.FORCE_RETRY).get()
        self.assertEqual(entry.details["custom_gas_price"], 40_000_000_000)

    def test_refused_while_emergency_stop_active(self):
        hackathon, job = self.failed_job()
        self.service.activate_emergency_stop("exploit suspected", ADMIN)

        result = self.service.force_retry_distribution(hackathon.id, ADMIN)

        job.refresh_from_db()
        self.assertFalse(result.success)
        self.assertEqual(job.status, DistributionJob.Status.FAILED)

    def test_no_failed_job(self):
        hackathon = create_finalized_hackathon()

        result = self.service.force_retry_distribution(hackathon.id, ADMIN)

        self.assertFalse(result.success)
        self.assertIn("No failed or processing distribution", result.error)


class SystemHealthTests(EmergencyControlsTestCase):
    def test_healthy(self):
        snapshot = self.service.get_system_health_status()

        self.assertFalse(snapshot.degraded)
        self.assertFalse(snapshot.emergency_stop)
        self.assertEqual(snapshot.alerts, [])

    def test_emergency_stop_alert(self):
        self.service.activate_emergency_stop("exploit suspected", ADMIN)

        snapshot = self.service.get_system_health_status()

        self.assertTrue(snapshot.emergency_stop)
        self.assertEqual(snapshot.alerts[0].severity, "critical")
        self.assertIn("all distributions halted", snapshot.alerts[0].message)

    def test_counts_and_stuck_alert(self):
        hackathon = create_finalized_hackathon()
        self.scheduler.schedule_distribution(hackathon)
        self.scheduler.run_pending_jobs()
        age_open_submissions()
        self.monitor.poll()

        snapshot = self.service.get_system_health_status()

        self.assertEqual(snapshot.active_distributions, 1)
        self.assertEqual(snapshot.pending_transactions, 3)
        self.assertEqual(snapshot.stuck_transactions, 3)
        self.assertIn("high", [alert.severity for alert in snapshot.alerts])

    def test_read_only_gateway_alert(self):
        _, _, scheduler, monitor = build_services(FakeChainGateway(read_only=True))
        service = EmergencyControlsService(scheduler=scheduler, monitor=monitor)

        snapshot = service.get_system_health_status()

        self.assertTrue(snapshot.read_only)
        self.assertIn("read-only", snapshot.alerts[0].message)

    @patch("prize_pool.services.emergency_controls_service.log_error")
    def test_partial_read_failure_is_degraded(self, mock_log_error):
        with patch.object(
            self.monitor, "get_monitoring_stats", side_effect=Exception("timeout")
        ):
            snapshot = self.service.get_system_health_status()

        self.assertTrue(snapshot.degraded)
        self.assertEqual(snapshot.success_rate, 100.0)
        self.assertIn(
            "Failed to read transaction monitoring stats",
            [alert.message for alert in snapshot.alerts],
        )
        mock_log_error.assert_called_once()

    def test_distribution_jobs_lists_open_and_failed(self):
        _, failed = self.failed_job()
        scheduled, _ = self.scheduler.schedule_distribution(
            create_finalized_hackathon()
        )
        cancelled, _ = self.scheduler.schedule_distribution(
            create_finalized_hackathon()
        )
        self.scheduler.cancel(cancelled, "duplicate")

        jobs = self.service.get_distribution_jobs()

        self.assertEqual({job.id for job in jobs}, {failed.id, scheduled.id})
