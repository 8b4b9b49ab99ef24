"""
WSGI config for the Django application.

The typing tracker lives in process memory, so deploy with a single worker
process (threads are fine) or accept per-process typing indicators.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
