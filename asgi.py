"""
asgi.py -- ASGI entry point for the NexusX auth service.

This is the only module that builds the application at import time; api/
exposes a factory so tests and tools can construct their own instance.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import create_app

app = create_app()
