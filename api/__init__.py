"""
HTTP layer for the order pipeline.

A FastAPI application exposing order intake, read-only views of orders and
the outbox, and an outbox replay endpoint.
"""

from api.main import app, create_app

__all__ = ["app", "create_app"]
