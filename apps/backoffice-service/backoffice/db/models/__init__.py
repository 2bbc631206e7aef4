"""
SQLAlchemy models for the ownership records, exposed from one import path.
"""

from .base import Base, now_utc  # re-export

# Domain models
from .organizations import Organization
from .entities import Entity, Borrower, EntityOwner

__all__ = [
    # base
    "Base",
    "now_utc",
    # organizations
    "Organization",
    # ownership records
    "Entity",
    "Borrower",
    "EntityOwner",
]
