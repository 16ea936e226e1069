"""Settings for the pytest run.

Keeps the production module as the single source of truth and only
swaps out the services a test process cannot rely on (Redis, broker,
notification endpoint).
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("MANAGED_AUTH_JWT_SECRET", "test-managed-auth-secret-0123456789")

from config.settings import *  # noqa: E402,F401,F403

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False

NOTIFICATION_ENDPOINT_URL = "http://notifications.test/api/send-email"
NOTIFICATION_MAX_RETRIES = 3

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    "DEFAULT_THROTTLE_CLASSES": [],
}
