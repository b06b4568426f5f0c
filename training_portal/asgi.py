"""
ASGI config for training_portal project.

It exposes the ASGI callable as a module-level variable named ``application``.
daphne serves it, see start.py.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "training_portal.settings")

application = get_asgi_application()
