"""
ASGI entrypoint: Django for HTTP, the shopfloor realtime endpoint for ``/ws``.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'testproject.settings')

django_application = get_asgi_application()

from shopfloor.realtime.endpoint import websocket_router  # noqa: E402

application = websocket_router(django_application)
