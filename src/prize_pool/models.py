from .related_models.audit_entry_model import AuditEntry
from .related_models.distribution_job_model import DistributionJob
from .related_models.distribution_record_model import DistributionRecord
from .related_models.distribution_submission_model import DistributionSubmission
from .related_models.emergency_stop_model import (
    EmergencyStopReason,
    EmergencyStopState,
)
