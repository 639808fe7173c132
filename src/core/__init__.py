"""
Core Domain Layer - the hexagon.

Pure business logic for the engagement backend:
- No framework imports (Django, Celery, ...)
- Fully testable without a database
- Infrastructure agnostic
"""
