import uuid

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from prize_pool.related_models.constants import ADDRESS_LENGTH
from utils.models import AppendOnlyModel


class AuditEntry(AppendOnlyModel):
    """
    Append-only record of a privileged operation, written in the same
    transaction as the change it describes. Failed attempts are recorded
    with `success=False`.
    """

    class Action(models.TextChoices):
        EMERGENCY_STOP = "EMERGENCY_STOP", "Emergency stop"
        EMERGENCY_RESUME = "EMERGENCY_RESUME", "Emergency resume"
        MANUAL_DISTRIBUTION = "MANUAL_DISTRIBUTION", "Manual distribution"
        CANCEL_DISTRIBUTION = "CANCEL_DISTRIBUTION", "Cancel distribution"
        STATUS_OVERRIDE = "STATUS_OVERRIDE", "Status override"
        FORCE_RETRY = "FORCE_RETRY", "Force retry"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_date = models.DateTimeField(auto_now_add=True, db_index=True)
    action = models.CharField(max_length=32, choices=Action.choices)
    hackathon = models.ForeignKey(
        "hackathon.Hackathon",
        on_delete=models.PROTECT,
        related_name="audit_entries",
        null=True,
        blank=True,
        help_text="Null for system wide actions",
    )
    admin_address = models.CharField(max_length=ADDRESS_LENGTH)
    reason = models.TextField(blank=True, default="")
    success = models.BooleanField(default=True)
    details = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    class Meta:
        ordering = ["-created_date"]
        verbose_name_plural = "audit entries"
        indexes = [
            models.Index(fields=["action"], name="audit_entry_action_idx"),
        ]

    def __str__(self):
        return f"AuditEntry({self.action}, {self.admin_address}, success={self.success})"
