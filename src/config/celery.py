"""
Celery configuration for the produce ordering backend.

DJANGO_SETTINGS_MODULE is set before the app is instantiated so Celery
reads its options from Django settings (``CELERY_`` prefix).
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("produce")

# Read options from Django settings with the CELERY_ prefix
app.config_from_object("django.conf:settings", namespace="CELERY")

# Discover tasks.py in every installed app
app.autodiscover_tasks()
