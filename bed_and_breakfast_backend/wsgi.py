"""WSGI config for the bed & breakfast project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "bed_and_breakfast_backend.settings")

application = get_wsgi_application()
