from django.contrib import admin

from prize_pool.models import (
    AuditEntry,
    DistributionJob,
    DistributionRecord,
    DistributionSubmission,
    EmergencyStopReason,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class DistributionSubmissionInline(admin.TabularInline):
    model = DistributionSubmission
    extra = 0
    can_delete = False
    readonly_fields = (
        "attempt",
        "tx_hash",
        "nonce",
        "gas_price",
        "status",
        "submitted_at",
        "confirmed_at",
        "error",
    )
    fields = readonly_fields


@admin.register(DistributionJob)
class DistributionJobAdmin(ReadOnlyAdmin):
    list_display = (
        "id",
        "hackathon",
        "status",
        "total_prize_pool",
        "retry_count",
        "scheduled_at",
        "completed_date",
    )
    list_filter = ("status",)


@admin.register(DistributionRecord)
class DistributionRecordAdmin(ReadOnlyAdmin):
    list_display = (
        "id",
        "job",
        "position",
        "recipient_address",
        "amount",
        "status",
        "attempt_count",
        "tx_hash",
    )
    list_filter = ("status",)
    search_fields = ("recipient_address", "tx_hash")
    inlines = [DistributionSubmissionInline]


@admin.register(AuditEntry)
class AuditEntryAdmin(ReadOnlyAdmin):
    list_display = ("created_date", "action", "hackathon", "admin_address", "success")
    list_filter = ("action", "success")
    search_fields = ("admin_address", "reason")


@admin.register(EmergencyStopReason)
class EmergencyStopReasonAdmin(ReadOnlyAdmin):
    list_display = ("created_date", "admin_address", "reason")
