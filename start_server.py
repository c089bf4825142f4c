"""Production server startup script for the delivery engine API.

This module provides the entry point for starting the Django application
with Gunicorn in production environments (Docker containers, Kubernetes).
The engine runs inside the single Gunicorn worker process so that one
process owns the delivery queue.
"""

import sys

from gunicorn.app.wsgiapp import run


def main():
    """Start the delivery engine API using Gunicorn.

    Configures and launches Gunicorn with production-ready settings:
    - Binds to 0.0.0.0:8000 for container accessibility
    - Uses 1 worker process, the single owner of the delivery queue
    - 4 threads for concurrent API requests
    - 60-second timeout for long-running requests
    - Logs to stdout/stderr for container log aggregation
    """
    sys.argv = [
        "gunicorn",
        "delivery_service.wsgi:application",
        "--bind",
        "0.0.0.0:8000",
        "--workers",
        "1",
        "--threads",
        "4",
        "--timeout",
        "60",
        "--access-logfile",
        "-",
        "--error-logfile",
        "-",
    ]
    run()


if __name__ == "__main__":
    main()
