# identity/utils/__init__.py
