"""
Organization scoping utilities.

Every ownership record belongs to exactly one organization; the API layer
resolves the caller's organization before any id reaches the query layer and
these helpers apply it uniformly.
"""
import uuid
from typing import Iterable, List, Optional
from sqlalchemy import false


def coerce_uuid(value) -> Optional[uuid.UUID]:
    """Return ``value`` as a UUID, or None when it cannot be parsed."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def coerce_uuid_list(values: Iterable) -> List[uuid.UUID]:
    """Parse ids, dropping unparseable values and duplicates while keeping order."""
    seen = set()
    out: List[uuid.UUID] = []
    for value in values or []:
        parsed = coerce_uuid(value)
        if parsed is None or parsed in seen:
            continue
        seen.add(parsed)
        out.append(parsed)
    return out


def apply_organization_scope(query, organization_id: Optional[uuid.UUID], model_class):
    """
    Restrict a query to rows owned by ``organization_id``.

    Args:
        query: SQLAlchemy query object
        organization_id: The caller's organization; None matches nothing
        model_class: A model with an ``organization_id`` column

    Returns:
        Filtered query
    """
    if organization_id is None:
        return query.filter(false())
    return query.filter(model_class.organization_id == organization_id)
