# mentorhub/api/__init__.py
# This file makes the api directory a Python package.

from . import auth
from . import availability
from . import notification
from . import session

__all__ = [
    "auth",
    "availability",
    "notification",
    "session",
]
