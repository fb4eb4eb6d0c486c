from .base import *

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

TIME_ZONE = "UTC"
FARE_ROUNDING_STEP = 5
FARE_DEFAULT_COMMISSION_PERCENTAGE = 10

# No network calls from tests
GOOGLE_MAPS_API_KEY = ""
OSRM_BASE_URL = ""
NOMINATIM_BASE_URL = ""
WHATSAPP_API_URL = ""

LOGGING["root"]["level"] = "WARNING"
