# campus_sync/core/__init__.py
