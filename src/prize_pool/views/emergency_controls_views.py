"""
Emergency controls API for distribution admins, mounted at
/api/emergency-controls/.
"""

from dataclasses import asdict

from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from prize_pool.permissions import IsDistributionAdmin
from prize_pool.serializers import (
    AuditEntrySerializer,
    CancelDistributionSerializer,
    DistributionJobSerializer,
    EmergencyStopSerializer,
    ForceRetrySerializer,
    ManualDistributionSerializer,
    OverrideStatusSerializer,
)
from prize_pool.services.emergency_controls_service import EmergencyControlsService


class AuditTrailPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 200


class EmergencyControlsView(APIView):
    permission_classes = [IsAuthenticated, IsDistributionAdmin]

    def get_service(self):
        return EmergencyControlsService()

    def admin_address(self, request):
        return request.user.wallet_address

    def respond(self, result):
        return Response(result.to_dict())


class OperationView(EmergencyControlsView):
    """Validates the body with `serializer_class` and executes the
    operation it builds.
    """

    serializer_class = None

    def post(self, request):
        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.get_service().execute(
            serializer.to_operation(), self.admin_address(request)
        )
        return self.respond(result)


class EmergencyStopView(EmergencyControlsView):
    """POST /api/emergency-controls/emergency-stop/"""

    def post(self, request):
        serializer = EmergencyStopSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.get_service().activate_emergency_stop(
            serializer.validated_data["reason"], self.admin_address(request)
        )
        return self.respond(result)


class EmergencyStopDeactivateView(EmergencyControlsView):
    """POST /api/emergency-controls/emergency-stop/deactivate/"""

    def post(self, request):
        result = self.get_service().deactivate_emergency_stop(
            self.admin_address(request)
        )
        return self.respond(result)


class EmergencyStopStatusView(EmergencyControlsView):
    """GET /api/emergency-controls/emergency-stop/status/"""

    def get(self, request):
        return self.respond(self.get_service().get_emergency_stop_status())


class ManualDistributionView(OperationView):
    serializer_class = ManualDistributionSerializer


class CancelDistributionView(OperationView):
    serializer_class = CancelDistributionSerializer


class OverrideStatusView(OperationView):
    serializer_class = OverrideStatusSerializer


class ForceRetryView(OperationView):
    serializer_class = ForceRetrySerializer


class SystemHealthView(EmergencyControlsView):
    """GET /api/emergency-controls/system-health/"""

    def get(self, request):
        snapshot = self.get_service().get_system_health_status()
        return Response(
            {
                "success": True,
                "message": (
                    "System health degraded" if snapshot.degraded else "System health"
                ),
                "data": asdict(snapshot),
            }
        )


class DistributionJobsView(EmergencyControlsView):
    """GET /api/emergency-controls/distribution-jobs/ - open and failed jobs."""

    def get(self, request):
        jobs = self.get_service().get_distribution_jobs()
        return Response(
            {
                "success": True,
                "message": f"{len(jobs)} active distribution jobs",
                "data": DistributionJobSerializer(jobs, many=True).data,
            }
        )


class AuditTrailView(EmergencyControlsView):
    """GET /api/emergency-controls/audit-trail/?hackathon=&action="""

    pagination_class = AuditTrailPagination

    def get(self, request):
        hackathon_id = request.query_params.get("hackathon")
        if hackathon_id is not None and not hackathon_id.isdigit():
            return Response(
                {
                    "success": False,
                    "message": "Invalid hackathon filter",
                    "data": None,
                    "error": "hackathon must be an integer id",
                },
                status=400,
            )

        entries = self.get_service().get_audit_trail(
            hackathon_id=int(hackathon_id) if hackathon_id else None,
            action=request.query_params.get("action"),
        )
        paginator = self.pagination_class()
        page = paginator.paginate_queryset(entries, request, view=self)
        return paginator.get_paginated_response(
            AuditEntrySerializer(page, many=True).data
        )
