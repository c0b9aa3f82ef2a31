# =============================================================================
# Project configuration package
# =============================================================================
# Settings, URL routing, the ASGI/WSGI entry points and the Celery app.
#
# The Celery app is imported here so that @shared_task decorators in the
# payments, contracts and notifications apps bind to it on startup.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
