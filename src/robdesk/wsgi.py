"""WSGI config for the ROBDESK project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "robdesk.settings")

application = get_wsgi_application()
