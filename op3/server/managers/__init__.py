"""Data access managers for the OP3 backend.

Each module provides async functions that encapsulate CRUD operations and
business logic.  Managers accept ``AsyncSession`` as a parameter, commit on
success and raise ``AppError`` or a ``NotFoundError`` subclass.  Routers let
those propagate to the centralised exception handlers.
"""
