from django.urls import include, path
from rest_framework.routers import DefaultRouter

from prize_pool.views import distribution_views
from prize_pool.views import emergency_controls_views as views

router = DefaultRouter()
router.register(
    r"jobs", distribution_views.DistributionJobViewSet, basename="distribution-jobs"
)
router.register(
    r"records",
    distribution_views.DistributionRecordViewSet,
    basename="distribution-records",
)

emergency_controls_urlpatterns = [
    path("emergency-stop/", views.EmergencyStopView.as_view()),
    path(
        "emergency-stop/deactivate/",
        views.EmergencyStopDeactivateView.as_view(),
    ),
    path("emergency-stop/status/", views.EmergencyStopStatusView.as_view()),
    path("manual-distribution/", views.ManualDistributionView.as_view()),
    path("cancel-distribution/", views.CancelDistributionView.as_view()),
    path("override-status/", views.OverrideStatusView.as_view()),
    path("force-retry/", views.ForceRetryView.as_view()),
    path("system-health/", views.SystemHealthView.as_view()),
    path("distribution-jobs/", views.DistributionJobsView.as_view()),
    path("audit-trail/", views.AuditTrailView.as_view()),
]

distribution_urlpatterns = [
    path("", include(router.urls)),
]
