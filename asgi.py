"""
asgi.py -- ASGI entry point for the Fabric QR server.

Run with:  uvicorn asgi:app --reload
           python main.py serve

Deployment platforms that import an ASGI callable point at this module.
"""

from api.main import app

__all__ = ["app"]
