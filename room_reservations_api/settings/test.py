from .base import *


SECRET_KEY = "test"  # nosec

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

# Celery
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

RESERVATIONS_MAX_OCCURRENCES = 500
RESERVATIONS_ROOM_CONFLICTS_MODE = "show_filtered_if_only_conflicts"
RESERVATIONS_CONFERENCE_CALLS_ENABLED = True
RESERVATIONS_ORGANIZER_EMAIL = "organizer@example.com"
DEFAULT_FROM_EMAIL = "reservations@example.com"
