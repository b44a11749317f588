# meter_app/api/__init__.py

from meter_app.api import auth
from meter_app.api import media
from meter_app.api import readings

__all__ = [
    "auth",
    "media",
    "readings",
]
