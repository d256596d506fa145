"""SQLAlchemy-backed repository helpers.

Helpers take an ``AsyncSession`` and never commit; callers own the
transaction boundary.
"""
