"""
Declarative base.

All ORM models inherit from Base so a single metadata holds the schema.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass
