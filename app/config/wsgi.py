"""
WSGI entry point.

Kept for hosts that only speak WSGI (gunicorn sync workers, mod_wsgi).
The default deployment serves config.asgi through Uvicorn.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
