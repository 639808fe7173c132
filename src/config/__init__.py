"""
Project configuration.

Modules:
- settings: Django settings
- urls: root URL configuration
- wsgi: WSGI application
- celery: Celery application for async handlers and beat
- container: dependency injection container
"""

# Load the Celery app with Django so shared_task binds to it
from .celery import app as celery_app

__all__ = ('celery_app',)
