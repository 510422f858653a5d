# app/routers/__init__.py

from app.routers import health
from app.routers import bank_import

__all__ = ["health", "bank_import"]
