import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default="False"):
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_int(name, default):
    return int(os.getenv(name, str(default)))


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-secret-key-change-this-in-production")
DEBUG = _env_bool("DJANGO_DEBUG", "True")
ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")
    if host.strip()
]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "circulation",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "school_library.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "school_library.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DATABASE_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

LANGUAGE_CODE = os.getenv("LANGUAGE_CODE", "en-us")
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Loan policy. Every value can be overridden from the environment.
LIBRARY_LOANS = {
    "MAX_LOANS_PER_PERSON": _env_int("LIBRARY_MAX_LOANS_PER_PERSON", 3),
    "LOAN_DAYS": _env_int("LIBRARY_LOAN_DAYS", 15),
    "MIN_QUANTITY": _env_int("LIBRARY_MIN_QUANTITY", 1),
    "MAX_QUANTITY": _env_int("LIBRARY_MAX_QUANTITY", 5),
    "REQUEST_QUANTITY_CEILING": _env_int("LIBRARY_REQUEST_QUANTITY_CEILING", 50),
    "STUDENT_MAX_QUANTITY": _env_int("LIBRARY_STUDENT_MAX_QUANTITY", 1),
    "MIN_RENEWAL_DAYS": _env_int("LIBRARY_MIN_RENEWAL_DAYS", 1),
    "MAX_RENEWAL_DAYS": _env_int("LIBRARY_MAX_RENEWAL_DAYS", 30),
    "NEAR_DUE_DAYS": _env_int("LIBRARY_NEAR_DUE_DAYS", 3),
    "MAX_OBSERVATION_LENGTH": _env_int("LIBRARY_MAX_OBSERVATION_LENGTH", 500),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "circulation": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}
