"""FastAPI web shell wiring the storage layer into a request pipeline."""

from abcretails.web.app import create_app

__all__ = ["create_app"]
