"""URL routing configuration for the delivery application."""

from django.urls import path

from .views import (
    AlertsView,
    FailedJobsView,
    FailureTrendsView,
    JobDetailView,
    LivenessCheckView,
    NotificationMetricsView,
    QueueMetricsView,
    QueuePauseView,
    QueueResumeView,
    RetryFailedJobView,
    RetryJobsView,
)

urlpatterns = [
    # Health check endpoints
    path("health/live", LivenessCheckView.as_view(), name="health-live"),
    # Queue monitor endpoints
    path(
        "queue-monitor/metrics",
        QueueMetricsView.as_view(),
        name="queue-metrics",
    ),
    path(
        "queue-monitor/jobs/<str:job_id>",
        JobDetailView.as_view(),
        name="queue-job-detail",
    ),
    path(
        "queue-monitor/failed",
        FailedJobsView.as_view(),
        name="queue-failed-jobs",
    ),
    path(
        "queue-monitor/retry",
        RetryJobsView.as_view(),
        name="queue-retry-jobs",
    ),
    path(
        "queue-monitor/retry/<str:job_id>",
        RetryFailedJobView.as_view(),
        name="queue-retry-job",
    ),
    path(
        "queue-monitor/pause",
        QueuePauseView.as_view(),
        name="queue-pause",
    ),
    path(
        "queue-monitor/resume",
        QueueResumeView.as_view(),
        name="queue-resume",
    ),
    # Notification metrics endpoints
    path(
        "metrics/notifications",
        NotificationMetricsView.as_view(),
        name="notification-metrics",
    ),
    path(
        "metrics/trends",
        FailureTrendsView.as_view(),
        name="notification-trends",
    ),
    path(
        "metrics/alerts",
        AlertsView.as_view(),
        name="notification-alerts",
    ),
]
