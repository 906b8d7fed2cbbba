from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from hackathon.tests.helpers import WINNER_ADDRESSES, create_finalized_hackathon
from prize_pool.services.distribution_history_service import (
    DistributionHistoryService,
)
from prize_pool.tests.helpers import build_services, latest_hash
from user.tests.helpers import (
    create_distribution_admin,
    create_random_authenticated_user,
)

BASE_URL = "/api/distribution/records/"


class DistributionHistoryFixture:
    """One fully paid hackathon and one still waiting on its transfer."""

    def create_history(self):
        self.gateway, _, self.scheduler, self.monitor = build_services()
        self.paid = create_finalized_hackathon(title="Paid", amounts=(50, 30, 20))
        self.unpaid = create_finalized_hackathon(title="Unpaid", amounts=(40,))
        paid_job, _ = self.scheduler.schedule_distribution(self.paid)
        self.scheduler.schedule_distribution(self.unpaid)
        self.scheduler.run_pending_jobs()
        for record in paid_job.records.all():
            self.gateway.confirm(latest_hash(record))
        self.monitor.poll()


class DistributionHistoryServiceTests(DistributionHistoryFixture, TestCase):
    def setUp(self):
        self.create_history()
        self.service = DistributionHistoryService()

    def test_summary_all_time(self):
        summary = self.service.summary()

        self.assertEqual(summary["total_distributions"], 4)
        self.assertEqual(summary["completed_distributions"], 3)
        self.assertEqual(summary["pending_distributions"], 1)
        self.assertEqual(summary["failed_distributions"], 0)
        self.assertEqual(summary["total_amount"], "100")
        self.assertEqual(summary["unique_recipients"], 3)
        self.assertEqual(summary["unique_hackathons"], 2)
        self.assertEqual(summary["success_rate"], 75.0)
        self.assertGreaterEqual(summary["average_distribution_minutes"], 0)
        self.assertIsNone(summary["period_start"])

    def test_summary_for_one_hackathon(self):
        summary = self.service.summary(hackathon_id=self.unpaid.id)

        self.assertEqual(summary["total_distributions"], 1)
        self.assertEqual(summary["total_amount"], "0")
        self.assertEqual(summary["success_rate"], 0.0)
        self.assertIsNone(summary["average_distribution_minutes"])

    def test_summary_outside_period_is_empty(self):
        tomorrow = timezone.now() + timedelta(days=1)

        summary = self.service.summary(from_date=tomorrow)

        self.assertEqual(summary["total_distributions"], 0)
        self.assertEqual(summary["success_rate"], 0.0)
        self.assertEqual(summary["period_start"], tomorrow)

    def test_recipient_history_counts_completed_only(self):
        history = self.service.recipient_history(
            "0x" + WINNER_ADDRESSES[0][2:].upper()
        )

        self.assertEqual(history["total_received"], "50")
        self.assertEqual(history["distribution_count"], 1)
        self.assertEqual(history["hackathons_won"], 1)
        self.assertEqual(history["average_position"], 1.0)
        self.assertIsNotNone(history["last_win"])
        entry = history["distributions"][0]
        self.assertEqual(entry["hackathon_title"], "Paid")
        self.assertEqual(entry["amount"], "50")

    def test_unknown_recipient(self):
        history = self.service.recipient_history(
            "0x00000000000000000000000000000000000000ff"
        )

        self.assertEqual(history["total_received"], "0")
        self.assertEqual(history["distribution_count"], 0)
        self.assertIsNone(history["last_win"])

    def test_dashboard_periods(self):
        stats = self.service.dashboard_stats()

        self.assertEqual(stats["today"]["total_distributions"], 4)
        self.assertEqual(stats["this_week"]["total_distributions"], 4)
        self.assertEqual(stats["this_month"]["total_distributions"], 4)
        self.assertEqual(stats["all_time"]["completed_distributions"], 3)
        self.assertEqual(len(stats["recent_distributions"]), 4)


class DistributionHistoryViewTests(DistributionHistoryFixture, APITestCase):
    def setUp(self):
        self.create_history()
        self.admin = create_distribution_admin("admin")
        self.client.force_authenticate(self.admin)

    def test_records_filtered_by_recipient(self):
        response = self.client.get(
            BASE_URL, {"recipient_address": WINNER_ADDRESSES[1].lower()}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        results = response.data["results"]
        self.assertEqual(len(results), 1)
        self.assertEqual(
            results[0]["recipient_address"].lower(), WINNER_ADDRESSES[1].lower()
        )

    def test_summary(self):
        response = self.client.get(
            BASE_URL + "summary/", {"hackathon_id": self.paid.id}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_distributions"], 3)
        self.assertEqual(response.data["total_amount"], "100")

    def test_summary_rejects_inverted_period(self):
        now = timezone.now()

        response = self.client.get(
            BASE_URL + "summary/",
            {
                "from_date": now.isoformat(),
                "to_date": (now - timedelta(days=1)).isoformat(),
            },
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("to_date", response.data)

    def test_dashboard(self):
        response = self.client.get(BASE_URL + "dashboard/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["all_time"]["total_distributions"], 4)
        recent = response.data["recent_distributions"]
        self.assertEqual(len(recent), 4)
        self.assertIn(recent[0]["hackathon_title"], ["Paid", "Unpaid"])

    def test_recipient(self):
        response = self.client.get(BASE_URL + f"recipient/{WINNER_ADDRESSES[2]}/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_received"], "20")
        self.assertEqual(response.data["hackathons_won"], 1)

    def test_history_requires_admin(self):
        self.client.force_authenticate(create_random_authenticated_user("user"))

        response = self.client.get(BASE_URL + "dashboard/")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
