# tests/conftest.py
"""Point the app at an in-memory SQLite registry before any app module is imported."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("API_KEY", "")
