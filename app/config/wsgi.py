"""
WSGI config for the marketplace backend.

Exposes the WSGI callable as a module-level variable named ``application``
for Gunicorn-style deployments. Uvicorn deployments use config.asgi.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
