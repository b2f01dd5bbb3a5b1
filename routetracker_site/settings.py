import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

env_path = BASE_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "routetracker-dev-only-secret")
DEBUG = os.getenv("DJANGO_DEBUG", "true").lower() == "true"
ALLOWED_HOSTS = [host for host in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if host]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    "routetracker",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
]

ROOT_URLCONF = "routetracker_site.urls"
WSGI_APPLICATION = "routetracker_site.wsgi.application"

# No models; the test runner still expects a database.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

USE_TZ = True
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "UTC")
STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

ROUTE_CONFIG = {
    # The provider posts here; by default this same app's proxy view.
    "endpoint": os.getenv("ROUTE_API_URL", "http://127.0.0.1:8000/route"),
    "timeout_seconds": float(os.getenv("ROUTE_API_TIMEOUT", "10")),
    "directions_url": os.getenv(
        "DIRECTIONS_API_URL", "https://maps.googleapis.com/maps/api/directions/json"
    ),
    "google_maps_api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
    "duplicate_threshold_km": float(os.getenv("ROUTE_DUPLICATE_THRESHOLD_KM", "0.00005")),
    "step_match_threshold_km": float(os.getenv("ROUTE_STEP_MATCH_THRESHOLD_KM", "0.1")),
    "max_segment_km": float(os.getenv("ROUTE_MAX_SEGMENT_KM", "0.02")),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "routetracker": {
            "handlers": ["console"],
            "level": os.getenv("ROUTETRACKER_LOG_LEVEL", "INFO"),
        },
    },
}
