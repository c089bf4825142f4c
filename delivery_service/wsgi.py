"""WSGI config for the delivery engine project.

The monitor API reads the in-memory state of the engine in its own process,
so the engine runs here by default. Set ``DELIVERY_START_ENGINE`` to "false"
only for a process that must not deliver; its engine is released and the
monitor endpoints answer 503. An API for an engine run by
``manage.py rundelivery`` is not available from another process.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "delivery_service.settings")

application = get_wsgi_application()

from delivery.apps import get_engine, release_engine  # noqa: E402

if os.getenv("DELIVERY_START_ENGINE", "true").lower() == "true":
    _engine = get_engine()
    _engine.recover()
    _engine.start()
else:
    release_engine()
