from django.db import models
from django.db.models import Q
from django.utils import timezone

from prize_pool.related_models.constants import UINT256_DIGITS
from utils.models import DefaultModel


class DistributionJobQuerySet(models.QuerySet):
    def open(self):
        return self.filter(status__in=DistributionJob.OPEN_STATUSES)

    def for_hackathon(self, hackathon_id):
        return self.filter(hackathon_id=hackathon_id)


class DistributionJob(DefaultModel):
    """
    One payout run for a hackathon. At most one job per hackathon may be
    SCHEDULED or PROCESSING at any time.
    """

    class Status(models.TextChoices):
        SCHEDULED = "SCHEDULED", "Scheduled"
        PROCESSING = "PROCESSING", "Processing"
        COMPLETED = "COMPLETED", "Completed"
        FAILED = "FAILED", "Failed"
        CANCELLED = "CANCELLED", "Cancelled"

    OPEN_STATUSES = (Status.SCHEDULED, Status.PROCESSING)

    # FAILED -> COMPLETED happens when a late transaction confirms after
    # the job gave up on it.
    TRANSITIONS = {
        Status.SCHEDULED: (Status.PROCESSING, Status.CANCELLED),
        Status.PROCESSING: (Status.COMPLETED, Status.FAILED, Status.CANCELLED),
        Status.FAILED: (Status.PROCESSING, Status.COMPLETED, Status.CANCELLED),
        Status.COMPLETED: (),
        Status.CANCELLED: (),
    }

    hackathon = models.ForeignKey(
        "hackathon.Hackathon",
        on_delete=models.CASCADE,
        related_name="distribution_jobs",
    )
    total_prize_pool = models.DecimalField(
        max_digits=UINT256_DIGITS,
        decimal_places=0,
        help_text="Prize pool in the token's smallest unit",
    )
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.SCHEDULED,
    )
    scheduled_at = models.DateTimeField(default=timezone.now)
    retry_count = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default="")
    refund_requested = models.BooleanField(default=False)
    completed_date = models.DateTimeField(null=True, blank=True)

    objects = DistributionJobQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["hackathon"],
                condition=Q(status__in=["SCHEDULED", "PROCESSING"]),
                name="unique_open_distribution_job_per_hackathon",
            ),
        ]
        indexes = [
            models.Index(fields=["status"], name="distribution_job_status_idx"),
        ]

    def __str__(self):
        return f"DistributionJob({self.id}, hackathon={self.hackathon_id}, {self.status})"

    @property
    def is_open(self):
        return self.status in self.OPEN_STATUSES

    def can_transition_to(self, to_status):
        return to_status in self.TRANSITIONS.get(self.status, ())
