from django.db import models

from prize_pool.related_models.constants import ADDRESS_LENGTH
from utils.models import AppendOnlyModel

SINGLETON_ID = 1


class EmergencyStopState(models.Model):
    """
    Durable global circuit breaker. While `active`, no distribution
    transaction may be broadcast. Monitoring and reads continue.
    """

    id = models.PositiveSmallIntegerField(primary_key=True, default=SINGLETON_ID)
    active = models.BooleanField(default=False)
    activated_date = models.DateTimeField(null=True, blank=True)
    activated_by = models.CharField(max_length=ADDRESS_LENGTH, blank=True, default="")
    deactivated_date = models.DateTimeField(null=True, blank=True)
    deactivated_by = models.CharField(
        max_length=ADDRESS_LENGTH, blank=True, default=""
    )
    updated_date = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"EmergencyStopState(active={self.active})"

    @classmethod
    def load(cls, for_update=False):
        queryset = cls.objects.select_for_update() if for_update else cls.objects
        state, _ = queryset.get_or_create(pk=SINGLETON_ID)
        return state

    @classmethod
    def is_active(cls):
        """Reads the flag from the database on every call."""
        return cls.objects.filter(pk=SINGLETON_ID, active=True).exists()


class EmergencyStopReason(AppendOnlyModel):
    admin_address = models.CharField(max_length=ADDRESS_LENGTH)
    reason = models.TextField()
    created_date = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_date", "id"]

    def __str__(self):
        return f"EmergencyStopReason({self.admin_address}, {self.created_date})"
