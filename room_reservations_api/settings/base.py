import os

from decouple import Csv, config  # type: ignore
from dj_database_url import parse as db_url


BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def base_dir_join(*args):
    return os.path.join(BASE_DIR, *args)


SITE_ID = 1

DEBUG = True

ADMINS = (("Admin", "foo@example.com"),)

ALLOWED_HOSTS: list[str] = []

DATABASES = {
    "default": config(
        "DATABASE_URL", cast=db_url, default="sqlite:///" + base_dir_join("db.sqlite3")
    ),
}
INTERNAL_INSTALLED_APPS = [
    "di_core",
    "common",
    "reservations",
]
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django_guid",
    *INTERNAL_INSTALLED_APPS,
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django_guid.middleware.guid_middleware",
]

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True

REDIS_URL = config("REDIS_URL", default="")

# Celery
# Recommended settings for reliability: https://gist.github.com/fjsj/da41321ac96cf28a96235cb20e7236f6
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TASK_ACKS_LATE = True
CELERY_TIMEZONE = TIME_ZONE
CELERY_BROKER_TRANSPORT_OPTIONS = {"confirm_publish": True, "confirm_timeout": 5.0}
CELERY_BROKER_POOL_LIMIT = config("CELERY_BROKER_POOL_LIMIT", cast=int, default=1)
CELERY_BROKER_CONNECTION_TIMEOUT = config(
    "CELERY_BROKER_CONNECTION_TIMEOUT", cast=float, default=30.0
)
CELERY_TASK_ACKS_ON_FAILURE_OR_TIMEOUT = config(
    "CELERY_TASK_ACKS_ON_FAILURE_OR_TIMEOUT", cast=bool, default=True
)
CELERY_TASK_REJECT_ON_WORKER_LOST = config(
    "CELERY_TASK_REJECT_ON_WORKER_LOST", cast=bool, default=False
)
CELERY_WORKER_PREFETCH_MULTIPLIER = config("CELERY_WORKER_PREFETCH_MULTIPLIER", cast=int, default=1)
CELERY_WORKER_MAX_TASKS_PER_CHILD = config(
    "CELERY_WORKER_MAX_TASKS_PER_CHILD", cast=int, default=1000
)

# Sentry
SENTRY_DSN = config("SENTRY_DSN", default="")
COMMIT_SHA = config("RENDER_GIT_COMMIT", default="")

DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="reservations@example.com")
DEFAULT_BCC_EMAILS: list[str] = config("DEFAULT_BCC_EMAILS", default="", cast=Csv())

# Reservations
RESERVATIONS_MAX_OCCURRENCES = config("RESERVATIONS_MAX_OCCURRENCES", cast=int, default=500)
RESERVATIONS_ROOM_CONFLICTS_MODE = config(
    "RESERVATIONS_ROOM_CONFLICTS_MODE", default="show_filtered_if_only_conflicts"
)
RESERVATIONS_CONFERENCE_CALLS_ENABLED = config(
    "RESERVATIONS_CONFERENCE_CALLS_ENABLED", cast=bool, default=True
)
RESERVATIONS_ORGANIZER_EMAIL = config(
    "RESERVATIONS_ORGANIZER_EMAIL", default="reservations@example.com"
)
