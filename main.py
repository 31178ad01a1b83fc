"""WSGI entrypoint for the Recipe Book application.

The storage backend is chosen from ``RECIPEBOOK_PLATFORM`` when the app is
created: ``device`` keeps recipes in local files, ``web`` keeps them in
Firestore. Local development can use ``flask --app main run`` which imports
the ``app`` object defined below.
"""

from recipebook import create_app
from recipebook.config import Settings
from recipebook.logs import setup_logging

settings = Settings.from_env()
setup_logging(settings.log_level)

app = create_app(settings=settings)


__all__ = ["app"]
