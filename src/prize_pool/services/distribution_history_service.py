from datetime import timedelta

from django.db.models import Count, Sum
from django.utils import timezone

from prize_pool.models import DistributionRecord

RECENT_DISTRIBUTIONS = 10


class DistributionHistoryService:
    """Read-only reporting over distribution records."""

    def summary(self, hackathon_id=None, from_date=None, to_date=None) -> dict:
        """Aggregates records created in `[from_date, to_date]`. Amounts only
        count COMPLETED records.
        """
        records = DistributionRecord.objects.all()
        if hackathon_id is not None:
            records = records.filter(hackathon_id=hackathon_id)
        if from_date is not None:
            records = records.filter(created_date__gte=from_date)
        if to_date is not None:
            records = records.filter(created_date__lte=to_date)

        counts = dict(
            records.values_list("status").annotate(count=Count("id")).order_by()
        )
        total = sum(counts.values())
        completed = records.filter(status=DistributionRecord.Status.COMPLETED)
        completed_count = counts.get(DistributionRecord.Status.COMPLETED, 0)

        durations = [
            (executed_at - created_date).total_seconds() / 60
            for created_date, executed_at in completed.filter(
                executed_at__isnull=False
            ).values_list("created_date", "executed_at")
        ]

        return {
            "total_distributions": total,
            "total_amount": str(
                int(completed.aggregate(total=Sum("amount"))["total"] or 0)
            ),
            "completed_distributions": completed_count,
            "pending_distributions": counts.get(DistributionRecord.Status.PENDING, 0),
            "failed_distributions": counts.get(DistributionRecord.Status.FAILED, 0),
            "cancelled_distributions": counts.get(
                DistributionRecord.Status.CANCELLED, 0
            ),
            "unique_recipients": records.values("recipient_address")
            .distinct()
            .count(),
            "unique_hackathons": records.values("hackathon_id").distinct().count(),
            "average_distribution_minutes": (
                round(sum(durations) / len(durations), 2) if durations else None
            ),
            "success_rate": round(completed_count / total * 100, 2) if total else 0.0,
            "period_start": from_date,
            "period_end": to_date,
        }

    def recipient_history(self, address) -> dict:
        """Everything a wallet has been paid, newest first."""
        records = (
            DistributionRecord.objects.filter(
                recipient_address__iexact=address,
                status=DistributionRecord.Status.COMPLETED,
            )
            .select_related("hackathon")
            .order_by("-executed_at", "-id")
        )
        distributions = [
            {
                "hackathon_id": record.hackathon_id,
                "hackathon_title": record.hackathon.title,
                "position": record.position,
                "amount": str(record.amount),
                "percentage": record.percentage,
                "status": record.status,
                "executed_at": record.executed_at,
                "tx_hash": record.tx_hash,
            }
            for record in records
        ]
        positions = [entry["position"] for entry in distributions]

        return {
            "recipient_address": address,
            "total_received": str(
                sum(int(entry["amount"]) for entry in distributions)
            ),
            "distribution_count": len(distributions),
            "hackathons_won": len({entry["hackathon_id"] for entry in distributions}),
            "average_position": (
                round(sum(positions) / len(positions), 2) if positions else 0
            ),
            "last_win": distributions[0]["executed_at"] if distributions else None,
            "distributions": distributions,
        }

    def dashboard_stats(self) -> dict:
        now = timezone.localtime()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)

        recent = DistributionRecord.objects.select_related("hackathon").order_by(
            "-created_date", "-id"
        )[:RECENT_DISTRIBUTIONS]

        return {
            "today": self.summary(from_date=today),
            "this_week": self.summary(from_date=now - timedelta(days=7)),
            "this_month": self.summary(from_date=today.replace(day=1)),
            "all_time": self.summary(),
            "recent_distributions": list(recent),
        }
