"""API routers for the Automation API."""

from app.routers import artifacts, automation, health, test_results, websocket

__all__ = ['artifacts', 'automation', 'health', 'test_results', 'websocket']
