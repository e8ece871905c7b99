"""
asgi.py -- Application assembly for the task tracker.

api/main.py builds the complete app (routers, middleware, exception
handlers). This module is the stable import path servers point at, so the
app's internal layout can move without changing deployment config.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
