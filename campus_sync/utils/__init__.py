# campus_sync/utils/__init__.py
