"""
asgi.py -- Application assembly for SongVault.

Run with:  uvicorn asgi:app --reload

Deployment entry point. api/main.py builds the app; this module is the only
name process managers need to know, so the app factory can move without
changing deployment config.
"""

from api.main import app

__all__ = ["app"]
