from django.db import models
from django.db.models import Q

from prize_pool.related_models.constants import (
    ADDRESS_LENGTH,
    TX_HASH_LENGTH,
    UINT256_DIGITS,
)


class DistributionRecord(models.Model):
    """
    Ledger row for one recipient of a distribution job. `tx_hash` is the
    latest attempt; every attempt is kept in `submissions`.
    """

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        COMPLETED = "COMPLETED", "Completed"
        FAILED = "FAILED", "Failed"
        CANCELLED = "CANCELLED", "Cancelled"

    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)
    CANCELLABLE_STATUSES = (Status.PENDING, Status.FAILED)

    job = models.ForeignKey(
        "prize_pool.DistributionJob",
        on_delete=models.CASCADE,
        related_name="records",
    )
    hackathon = models.ForeignKey(
        "hackathon.Hackathon",
        on_delete=models.CASCADE,
        related_name="distribution_records",
    )
    recipient_address = models.CharField(max_length=ADDRESS_LENGTH)
    position = models.PositiveIntegerField(help_text="1-based rank")
    amount = models.DecimalField(max_digits=UINT256_DIGITS, decimal_places=0)
    percentage = models.PositiveIntegerField(
        default=0,
        help_text="Share of the prize pool in basis points",
    )
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    tx_hash = models.CharField(max_length=TX_HASH_LENGTH, null=True, blank=True)
    executed_at = models.DateTimeField(null=True, blank=True)
    attempt_count = models.PositiveIntegerField(default=0)
    next_attempt_at = models.DateTimeField(null=True, blank=True)

    # Set by an admin force-retry, used instead of the automatic estimate
    custom_gas_price = models.DecimalField(
        max_digits=UINT256_DIGITS, decimal_places=0, null=True, blank=True
    )
    custom_gas_limit = models.PositiveBigIntegerField(null=True, blank=True)

    last_error = models.TextField(blank=True, default="")
    created_date = models.DateTimeField(auto_now_add=True)
    updated_date = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["job_id", "position"]
        constraints = [
            models.UniqueConstraint(
                fields=["job", "position"],
                name="unique_distribution_record_position",
            ),
            models.CheckConstraint(
                condition=Q(amount__gte=0),
                name="distribution_record_amount_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["status"], name="distribution_record_status_idx"),
        ]

    def __str__(self):
        return (
            f"DistributionRecord({self.id}, #{self.position} "
            f"{self.recipient_address}, {self.status})"
        )

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def latest_submission(self):
        return self.submissions.order_by("-attempt", "-id").first()
