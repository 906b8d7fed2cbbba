from django.db import models
from django.utils import timezone

from prize_pool.related_models.constants import TX_HASH_LENGTH, UINT256_DIGITS
from utils.models import DefaultModel


class DistributionSubmission(DefaultModel):
    """
    One broadcast attempt for a distribution record. Hashes are never
    overwritten; a retry adds a new row.

    SUBMITTED: the node accepted the transaction.
    UNKNOWN: signed and saved, but the node is not known to have accepted it.
        The transfer may still land.
    STUCK: no receipt within the timeout. Still polled.
    REJECTED: the write failed before signing. Nothing can land.
    DROPPED: never mined and its nonce was taken by another transaction.
    SUPERSEDED: another attempt for the same record confirmed.
    """

    class Status(models.TextChoices):
        SUBMITTED = "SUBMITTED", "Submitted"
        UNKNOWN = "UNKNOWN", "Unknown outcome"
        STUCK = "STUCK", "Stuck"
        CONFIRMED = "CONFIRMED", "Confirmed"
        REVERTED = "REVERTED", "Reverted"
        SUPERSEDED = "SUPERSEDED", "Superseded"
        REJECTED = "REJECTED", "Rejected"
        DROPPED = "DROPPED", "Dropped"

    OPEN_STATUSES = (Status.SUBMITTED, Status.UNKNOWN, Status.STUCK)
    IN_FLIGHT_STATUSES = (Status.SUBMITTED, Status.UNKNOWN)

    record = models.ForeignKey(
        "prize_pool.DistributionRecord",
        on_delete=models.CASCADE,
        related_name="submissions",
    )
    attempt = models.PositiveIntegerField()
    tx_hash = models.CharField(
        max_length=TX_HASH_LENGTH, null=True, blank=True, db_index=True
    )
    nonce = models.PositiveBigIntegerField(null=True, blank=True)
    gas_price = models.DecimalField(
        max_digits=UINT256_DIGITS, decimal_places=0, null=True, blank=True
    )
    gas_limit = models.PositiveBigIntegerField(null=True, blank=True)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.SUBMITTED,
    )
    submitted_at = models.DateTimeField(default=timezone.now)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    block_number = models.PositiveBigIntegerField(null=True, blank=True)
    confirmations = models.PositiveIntegerField(default=0)
    gas_used = models.PositiveBigIntegerField(null=True, blank=True)
    error = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["record_id", "attempt"]
        indexes = [
            models.Index(fields=["status"], name="distribution_sub_status_idx"),
        ]

    def __str__(self):
        return (
            f"DistributionSubmission({self.record_id}, attempt {self.attempt}, "
            f"{self.status})"
        )

    @property
    def is_open(self):
        return self.status in self.OPEN_STATUSES

    @property
    def is_in_flight(self):
        return self.status in self.IN_FLIGHT_STATUSES
