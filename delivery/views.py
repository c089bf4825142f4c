"""API views exposing the delivery engine's metrics consumer API."""

import structlog
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from delivery.apps import get_engine
from delivery.exceptions import StoreUnavailableError

logger = structlog.get_logger(__name__)


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


class EngineAPIView(APIView):
    """Base view resolving the engine owned by this process."""

    authentication_classes = []
    permission_classes = [AllowAny]

    @property
    def engine(self):
        engine = get_engine()
        if engine is None:
            raise StoreUnavailableError("Delivery engine is not initialized")
        return engine


class LivenessCheckView(EngineAPIView):
    """Liveness check endpoint.

    Returns 200 while the process is up. Does not touch the job store.
    """

    def get(self, _request):
        engine = get_engine()
        return Response(
            {
                "status": "ok",
                "engine_running": bool(engine and engine.is_running),
            },
            status=status.HTTP_200_OK,
        )


class QueueMetricsView(EngineAPIView):
    """GET queue-monitor/metrics: delivery queue snapshot."""

    def get(self, _request):
        return Response(_dump(self.engine.monitor.get_queue_stats()))


class JobDetailView(EngineAPIView):
    """GET queue-monitor/jobs/{job_id}: single job snapshot."""

    def get(self, _request, job_id):
        return Response(_dump(self.engine.monitor.get_job_details(job_id)))


class FailedJobsView(EngineAPIView):
    """Failed jobs listing and purge.

    GET returns every failed job, abandoned ones included. DELETE purges
    failed jobs that have no pending retry.
    """

    def get(self, _request):
        jobs = self.engine.monitor.get_failed_jobs()
        return Response([_dump(job) for job in jobs])

    def delete(self, _request):
        purged = self.engine.monitor.clear_failed_jobs()
        return Response({"purged": purged}, status=status.HTTP_200_OK)


class RetryJobsView(EngineAPIView):
    """GET queue-monitor/retry: pending retry jobs."""

    def get(self, _request):
        jobs = self.engine.monitor.get_retry_jobs()
        return Response([_dump(job) for job in jobs])


class RetryFailedJobView(EngineAPIView):
    """POST queue-monitor/retry/{job_id}: requeue a failed job.

    Returns:
        202: Job requeued
        404: Job not found
        409: Job is not failed, or a retry is already scheduled
    """

    def post(self, _request, job_id):
        self.engine.monitor.retry_failed_job(job_id)
        return Response(
            {"job_id": job_id, "message": "Job retry initiated"},
            status=status.HTTP_202_ACCEPTED,
        )


class QueuePauseView(EngineAPIView):
    """POST queue-monitor/pause: stop new dispatches."""

    def post(self, _request):
        self.engine.queue.pause()
        logger.info("queue_pause_requested")
        return Response({"paused": True})


class QueueResumeView(EngineAPIView):
    """POST queue-monitor/resume: restart dispatch."""

    def post(self, _request):
        self.engine.queue.resume()
        logger.info("queue_resume_requested")
        return Response({"paused": False})


class NotificationMetricsView(EngineAPIView):
    """GET metrics/notifications: derived notification metrics."""

    def get(self, _request):
        return Response(_dump(self.engine.monitor.get_metrics()))


class FailureTrendsView(EngineAPIView):
    """GET metrics/trends: daily, weekly and monthly failure rate trends."""

    def get(self, _request):
        return Response(_dump(self.engine.monitor.get_failure_trends()))


class AlertsView(EngineAPIView):
    """Alert evaluation.

    GET takes threshold overrides as query parameters, POST as a JSON body.
    Keys may be snake_case or camelCase; invalid values return 400.
    """

    def get(self, request):
        report = self.engine.monitor.check_alerts(request.query_params.dict())
        return Response(_dump(report))

    def post(self, request):
        report = self.engine.monitor.check_alerts(dict(request.data))
        return Response(_dump(report))
