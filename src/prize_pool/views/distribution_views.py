from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import ReadOnlyModelViewSet

from prize_pool.filters import DistributionRecordFilter
from prize_pool.models import DistributionJob, DistributionRecord
from prize_pool.permissions import IsDistributionAdmin
from prize_pool.serializers import (
    DistributionHistoryEntrySerializer,
    DistributionJobSerializer,
    DistributionRecordSerializer,
    DistributionSummaryQuerySerializer,
)
from prize_pool.services.distribution_history_service import (
    DistributionHistoryService,
)


class DistributionJobViewSet(ReadOnlyModelViewSet):
    permission_classes = [IsAuthenticated, IsDistributionAdmin]
    queryset = (
        DistributionJob.objects.select_related("hackathon")
        .prefetch_related("records")
        .order_by("-created_date", "-id")
    )
    serializer_class = DistributionJobSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["hackathon", "status"]


class DistributionRecordViewSet(ReadOnlyModelViewSet):
    permission_classes = [IsAuthenticated, IsDistributionAdmin]
    queryset = DistributionRecord.objects.prefetch_related("submissions").order_by(
        "job_id", "position"
    )
    serializer_class = DistributionRecordSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = DistributionRecordFilter

    def get_history_service(self):
        return DistributionHistoryService()

    @action(detail=False, methods=["get"])
    def summary(self, request: Request) -> Response:
        """Totals over records created in an optional date range."""
        query = DistributionSummaryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(self.get_history_service().summary(**query.validated_data))

    @action(detail=False, methods=["get"])
    def dashboard(self, request: Request) -> Response:
        stats = self.get_history_service().dashboard_stats()
        stats["recent_distributions"] = DistributionHistoryEntrySerializer(
            stats["recent_distributions"], many=True
        ).data
        return Response(stats)

    @action(
        detail=False,
        methods=["get"],
        url_path=r"recipient/(?P<address>0x[0-9a-fA-F]{40})",
    )
    def recipient(self, request: Request, address=None) -> Response:
        return Response(self.get_history_service().recipient_history(address))
