"""
asgi.py -- Runnable entry point for the MedTrack API.

Run with:  uvicorn asgi:app --reload
           python asgi.py            (binds HOST:PORT from settings)
"""

from api.main import app
from core.config import get_settings

__all__ = ["app"]


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("asgi:app", host=settings.host, port=settings.port, reload=settings.debug)
