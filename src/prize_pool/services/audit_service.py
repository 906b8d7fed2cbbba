import logging

from django.db import DatabaseError, transaction

from prize_pool.exceptions import AuditWriteError
from prize_pool.models import AuditEntry

logger = logging.getLogger(__name__)


class AuditService:
    def record(
        self,
        action,
        admin_address,
        reason="",
        hackathon=None,
        success=True,
        details=None,
    ) -> AuditEntry:
        try:
            with transaction.atomic():
                return AuditEntry.objects.create(
                    action=action,
                    admin_address=admin_address,
                    reason=reason or "",
                    hackathon=hackathon,
                    success=success,
                    details=details or {},
                )
        except DatabaseError as e:
            logger.error("Failed to write %s audit entry: %s", action, e)
            raise AuditWriteError(e) from e

    def get_audit_trail(self, hackathon_id=None, action=None):
        entries = AuditEntry.objects.select_related("hackathon")
        if hackathon_id is not None:
            entries = entries.filter(hackathon_id=hackathon_id)
        if action:
            entries = entries.filter(action=action)
        return entries.order_by("-created_date")
