# campus_sync/__init__.py
"""Client-side sync engine for the campus management dashboard."""
from .main import AppState, CampusApp

__all__ = ["AppState", "CampusApp"]
