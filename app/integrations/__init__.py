# app/integrations/__init__.py

from app.integrations import claude

__all__ = ["claude"]
