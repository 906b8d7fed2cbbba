from rest_framework import serializers

from hackathon.models import Hackathon
from prize_pool.models import (
    AuditEntry,
    DistributionJob,
    DistributionRecord,
    DistributionSubmission,
)
from prize_pool.operations import (
    Cancellation,
    ForceRetry,
    ManualDistribution,
    StatusOverride,
)

# Admin requests


class EmergencyStopSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class ManualDistributionSerializer(serializers.Serializer):
    hackathon_id = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=1000)
    bypass_checks = serializers.BooleanField(default=False)

    def to_operation(self):
        return ManualDistribution(**self.validated_data)


class CancelDistributionSerializer(serializers.Serializer):
    hackathon_id = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=1000)
    refund_prize_pool = serializers.BooleanField(default=False)

    def to_operation(self):
        return Cancellation(**self.validated_data)


class OverrideStatusSerializer(serializers.Serializer):
    hackathon_id = serializers.IntegerField(min_value=1)
    from_status = serializers.ChoiceField(choices=Hackathon.Status.choices)
    to_status = serializers.ChoiceField(choices=Hackathon.Status.choices)
    reason = serializers.CharField(max_length=1000)
    bypass_validation = serializers.BooleanField(default=False)

    def validate(self, attrs):
        if attrs["from_status"] == attrs["to_status"]:
            raise serializers.ValidationError(
                {"to_status": "Must differ from from_status."}
            )
        return attrs

    def to_operation(self):
        return StatusOverride(**self.validated_data)


class ForceRetrySerializer(serializers.Serializer):
    hackathon_id = serializers.IntegerField(min_value=1)
    custom_gas_price = serializers.IntegerField(
        min_value=1, required=False, allow_null=True
    )
    custom_gas_limit = serializers.IntegerField(
        min_value=1, required=False, allow_null=True
    )
    reason = serializers.CharField(max_length=1000, required=False, default="")

    def to_operation(self):
        return ForceRetry(**self.validated_data)


# Dashboard


class DistributionSubmissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = DistributionSubmission
        fields = [
            "id",
            "attempt",
            "tx_hash",
            "nonce",
            "gas_price",
            "gas_limit",
            "status",
            "submitted_at",
            "confirmed_at",
            "block_number",
            "confirmations",
            "gas_used",
            "error",
        ]


class DistributionRecordSerializer(serializers.ModelSerializer):
    submissions = DistributionSubmissionSerializer(many=True, read_only=True)

    class Meta:
        model = DistributionRecord
        fields = [
            "id",
            "job",
            "hackathon",
            "recipient_address",
            "position",
            "amount",
            "percentage",
            "status",
            "tx_hash",
            "executed_at",
            "attempt_count",
            "next_attempt_at",
            "last_error",
            "submissions",
            "created_date",
            "updated_date",
        ]


class DistributionJobSerializer(serializers.ModelSerializer):
    hackathon_title = serializers.CharField(source="hackathon.title", read_only=True)
    records = serializers.SerializerMethodField()

    class Meta:
        model = DistributionJob
        fields = [
            "id",
            "hackathon",
            "hackathon_title",
            "total_prize_pool",
            "status",
            "scheduled_at",
            "retry_count",
            "last_error",
            "refund_requested",
            "completed_date",
            "records",
            "created_date",
            "updated_date",
        ]

    def get_records(self, job):
        return [
            {
                "id": record.id,
                "position": record.position,
                "recipient_address": record.recipient_address,
                "amount": str(record.amount),
                "status": record.status,
                "tx_hash": record.tx_hash,
            }
            for record in job.records.all()
        ]


class AuditEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditEntry
        fields = [
            "id",
            "created_date",
            "action",
            "hackathon",
            "admin_address",
            "reason",
            "success",
            "details",
        ]


# History


class DistributionSummaryQuerySerializer(serializers.Serializer):
    hackathon_id = serializers.IntegerField(min_value=1, required=False)
    from_date = serializers.DateTimeField(required=False)
    to_date = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        from_date, to_date = attrs.get("from_date"), attrs.get("to_date")
        if from_date and to_date and from_date > to_date:
            raise serializers.ValidationError(
                {"to_date": "Must not be before from_date."}
            )
        return attrs


class DistributionHistoryEntrySerializer(serializers.ModelSerializer):
    hackathon_title = serializers.CharField(source="hackathon.title", read_only=True)

    class Meta:
        model = DistributionRecord
        fields = [
            "id",
            "job",
            "hackathon",
            "hackathon_title",
            "recipient_address",
            "position",
            "amount",
            "percentage",
            "status",
            "tx_hash",
            "executed_at",
            "last_error",
            "created_date",
        ]
