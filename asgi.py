"""
asgi.py -- Process entry point for the back-office API.

Settings are read from the environment exactly once, here. A missing
SECRET_KEY outside DEBUG mode raises at import, so the server never starts
with an unsigned or guessable configuration.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
