# app/core/__init__.py

"""Statement parsing, categorization, matching and import orchestration."""
